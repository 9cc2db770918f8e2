"""
Tests for the AuthFlow exception hierarchy.
"""
import pytest

from authflow.core.exceptions import (
    AuthFlowError,
    ConflictError,
    DependencyError,
    IllegalTransitionError,
    InvalidCredentialsError,
    InvalidOrExpiredError,
    NotAuthenticatedError,
    NotFoundError,
    UnverifiedAccountError,
    ValidationError,
)


@pytest.mark.parametrize("exc_class,status", [
    (ValidationError, 400),
    (ConflictError, 400),
    (InvalidOrExpiredError, 400),
    (InvalidCredentialsError, 400),
    (UnverifiedAccountError, 400),
    (NotFoundError, 400),
    (DependencyError, 400),
    (IllegalTransitionError, 400),
    (NotAuthenticatedError, 401),
])
def test_status_codes(exc_class, status):
    exc = exc_class()
    assert isinstance(exc, AuthFlowError)
    assert exc.status_code == status
    assert exc.message == exc_class.default_message


def test_to_dict():
    exc = DependencyError("Could not send email, please try again", dependency="email")
    assert exc.to_dict() == {
        "error_type": "DependencyError",
        "code": "DEPENDENCY_FAILED",
        "message": "Could not send email, please try again",
        "status_code": 400,
        "details": {"dependency": "email"},
    }


def test_illegal_transition_details():
    exc = IllegalTransitionError(from_state="none", transition="consume_reset_token")
    assert exc.details == {"from_state": "none", "transition": "consume_reset_token"}
    assert str(exc) == exc.message
