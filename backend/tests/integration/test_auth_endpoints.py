from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from authflow.api.deps import get_account_store, get_email_service
from authflow.core.config import settings
from authflow.core.exceptions import DependencyError
from authflow.core.security import create_session_token
from authflow.main import app
from authflow.services.account_store import InMemoryAccountStore


@pytest.fixture
def store():
    store = InMemoryAccountStore()
    app.dependency_overrides[get_account_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_account_store, None)


@pytest.fixture
def notifier():
    notifier = AsyncMock()
    app.dependency_overrides[get_email_service] = lambda: notifier
    yield notifier
    app.dependency_overrides.pop(get_email_service, None)


def make_client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def set_cookie_header(resp) -> str:
    return resp.headers.get("set-cookie", "").lower()


@pytest.mark.anyio
async def test_root_endpoint_basic_response():
    async with make_client() as client:
        resp = await client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body.get("message") == "AuthFlow API"
    assert body.get("status") == "operational"


@pytest.mark.anyio
async def test_health_without_database():
    async with make_client() as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["account_store"] == "memory"
    assert body["database"] == "not used"


@pytest.mark.anyio
async def test_full_lifecycle(store, notifier):
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "User created successfully"
        assert body["user"]["email"] == "a@x.com"
        assert body["user"]["is_verified"] is False
        code = notifier.send_verification_email.call_args.args[1]

        resp = await client.post("/api/auth/verify-email", json={"code": "000000" if code != "000000" else "111111"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Invalid or expired verification code"}

        resp = await client.post("/api/auth/verify-email", json={"code": code})
        assert resp.status_code == 200
        assert resp.json()["user"]["is_verified"] is True

        resp = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "Pw1!"})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged in successfully"
        assert resp.json()["user"]["last_login_at"] is not None

        resp = await client.post("/api/auth/forgot-password", json={"email": "a@x.com"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Password reset link sent to your email"}
        token = notifier.send_password_reset_email.call_args.args[1].rsplit("/", 1)[-1]

        resp = await client.post(f"/api/auth/reset-password/{token}", json={"password": "Pw2!"})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Password reset successful"

        resp = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "Pw1!"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Invalid credentials"}

        resp = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "Pw2!"})
        assert resp.status_code == 200

    assert len(store) == 1


@pytest.mark.anyio
async def test_user_payload_hides_secrets(store, notifier):
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
    user = resp.json()["user"]
    assert "hashed_password" not in user
    assert "verification_code" not in user
    assert "reset_token_hash" not in user
    assert set(user) <= {"id", "email", "name", "is_verified", "last_login_at", "created_at", "updated_at"}


@pytest.mark.anyio
async def test_signup_sets_session_cookie(store, notifier):
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
    cookie = set_cookie_header(resp)
    assert cookie.startswith("token=")
    assert "httponly" in cookie
    assert "samesite=strict" in cookie
    assert f"max-age={settings.session_max_age_seconds}" in cookie
    assert "path=/" in cookie


@pytest.mark.anyio
async def test_duplicate_signup_rejected(store, notifier):
    payload = {"email": "a@x.com", "password": "Pw1!", "name": "Ann"}
    async with make_client() as client:
        await client.post("/api/auth/signup", json=payload)
        resp = await client.post("/api/auth/signup", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "User already exists"}


@pytest.mark.anyio
async def test_missing_fields_rejected(store, notifier):
    async with make_client() as client:
        resp = await client.post("/api/auth/signup", json={"email": "a@x.com"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "All fields are required"}


@pytest.mark.anyio
async def test_malformed_body_rejected(store, notifier):
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid request body"}


@pytest.mark.anyio
async def test_unknown_email_login_matches_wrong_password(store, notifier):
    async with make_client() as client:
        await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
        wrong_password = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})
        unknown_email = await client.post("/api/auth/login", json={"email": "b@x.com", "password": "Pw1!"})
    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.json() == unknown_email.json()


@pytest.mark.anyio
async def test_forgot_password_unknown_email_same_answer(store, notifier):
    async with make_client() as client:
        resp = await client.post("/api/auth/forgot-password", json={"email": "nobody@x.com"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Password reset link sent to your email"}
    notifier.send_password_reset_email.assert_not_awaited()


@pytest.mark.anyio
@pytest.mark.parametrize("body", [
    b'{"email": "a@x.com", "password": "' + b"p" * 100 + b'", "name": "Ann"}',
    b'{"email": "a@x.com", "password": "\\ud800", "name": "Ann"}',
])
async def test_signup_unhashable_password_is_400(store, notifier, body):
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/signup",
            content=body,
            headers={"Content-Type": "application/json"},
        )
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert len(store) == 0


@pytest.mark.anyio
async def test_reset_with_long_password_is_400(store, notifier):
    async with make_client() as client:
        await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
        await client.post("/api/auth/forgot-password", json={"email": "a@x.com"})
        token = notifier.send_password_reset_email.call_args.args[1].rsplit("/", 1)[-1]

        resp = await client.post(f"/api/auth/reset-password/{token}", json={"password": "p" * 100})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Password must be at most 72 bytes"}


@pytest.mark.anyio
async def test_bad_reset_token_rejected(store, notifier):
    async with make_client() as client:
        resp = await client.post("/api/auth/reset-password/deadbeef", json={"password": "Pw2!"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid or expired reset token"}


@pytest.mark.anyio
async def test_email_failure_is_reported(store, notifier):
    notifier.send_verification_email.side_effect = DependencyError(
        "Could not send email, please try again", dependency="email"
    )
    async with make_client() as client:
        resp = await client.post(
            "/api/auth/signup",
            json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
        )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Could not send email, please try again"
    # Account creation is not rolled back
    assert await store.get_by_email("a@x.com") is not None


class TestCheckAuth:

    @pytest.mark.anyio
    async def test_cookie_session(self, store, notifier):
        async with make_client() as client:
            await client.post(
                "/api/auth/signup",
                json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
            )
            resp = await client.get("/api/auth/check-auth")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["user"]["email"] == "a@x.com"

    @pytest.mark.anyio
    async def test_bearer_session(self, store, notifier):
        async with make_client() as client:
            signup = await client.post(
                "/api/auth/signup",
                json={"email": "a@x.com", "password": "Pw1!", "name": "Ann"},
            )
        account_id = signup.json()["user"]["id"]
        token = create_session_token(account_id, settings)

        async with make_client() as client:
            resp = await client.get(
                "/api/auth/check-auth",
                headers={"Authorization": f"Bearer {token}"},
            )
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == account_id

    @pytest.mark.anyio
    async def test_no_token(self, store, notifier):
        async with make_client() as client:
            resp = await client.get("/api/auth/check-auth")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Unauthorized - no token provided"}

    @pytest.mark.anyio
    async def test_invalid_token(self, store, notifier):
        async with make_client() as client:
            resp = await client.get(
                "/api/auth/check-auth",
                headers={"Authorization": "Bearer not-a-token"},
            )
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Unauthorized - invalid token"}

    @pytest.mark.anyio
    async def test_token_for_deleted_account(self, store, notifier):
        token = create_session_token("no-such-account", settings)
        async with make_client() as client:
            resp = await client.get(
                "/api/auth/check-auth",
                headers={"Authorization": f"Bearer {token}"},
            )
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "User not found"}


@pytest.mark.anyio
async def test_logout_clears_cookie(store, notifier):
    async with make_client() as client:
        resp = await client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Logged out successfully"}
    cookie = set_cookie_header(resp)
    assert cookie.startswith('token=""') or cookie.startswith("token=;")
    assert "max-age=0" in cookie
