"""
Email Provider (SendGrid)

Thin async client for the SendGrid v3 mail API. Transport failures are
reported through SendResult rather than raised.
"""
import logging
from typing import Any, Dict, Optional
from dataclasses import dataclass

import httpx

from authflow.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    sent_count: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None


class SendGridProvider:
    """SendGrid email provider."""

    BASE_URL = "https://api.sendgrid.com/v3"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=30.0,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def close(self):
        """Explicit cleanup method."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _post_mail(self, payload: Dict[str, Any]) -> SendResult:
        http = await self._get_http_client()
        try:
            resp = await http.post(f"{self.BASE_URL}/mail/send", json=payload)

            if resp.status_code in (200, 202):
                return SendResult(
                    success=True,
                    sent_count=1,
                    message_id=resp.headers.get("X-Message-Id"),
                )
            logger.error(f"SendGrid send failed: {resp.status_code} - {resp.text[:200]}")
            return SendResult(success=False, error=f"HTTP {resp.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"SendGrid transport error: {type(e).__name__}: {e}")
            return SendResult(success=False, error=str(e))

    async def send_transactional(
        self,
        to_email: str,
        template_id: str,
        dynamic_data: Dict[str, Any],
    ) -> SendResult:
        """Send single transactional email through a dynamic template."""
        payload = {
            "personalizations": [{
                "to": [{"email": to_email}],
                "dynamic_template_data": dynamic_data,
            }],
            "from": {"email": self.from_email, "name": self.from_name},
            "template_id": template_id,
        }
        return await self._post_mail(payload)

    async def send_html(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        category: Optional[str] = None,
    ) -> SendResult:
        """Send email without template."""
        payload = {
            "personalizations": [{
                "to": [{"email": to_email}],
            }],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": [
                {"type": "text/html", "value": html_content},
            ],
        }
        if category:
            payload["categories"] = [category]
        return await self._post_mail(payload)
