"""
Auth Email Service

Sends the four account lifecycle emails: verification code, welcome,
password reset link and password reset confirmation.

Uses SendGrid for transactional email delivery. When SendGrid is not
configured (local development) emails are logged and skipped; when it is
configured, a failed delivery raises DependencyError.
"""
import html
import logging
from typing import Any, Dict, Optional

from authflow.core.config import Settings
from authflow.core.exceptions import DependencyError
from authflow.services.email_provider import SendGridProvider, SendResult

logger = logging.getLogger(__name__)


class AuthEmailService:
    """
    Notification sender for the account lifecycle.

    Handles:
    - Verification code emails
    - Welcome emails (after verification)
    - Password reset request emails
    - Password reset success emails
    """

    def __init__(self, settings: Settings, provider: Optional[SendGridProvider] = None):
        self.settings = settings
        self.provider = provider or SendGridProvider(settings)
        self.app_name = settings.APP_NAME

    async def send_verification_email(self, to_email: str, verification_code: str) -> SendResult:
        expire_minutes = self.settings.VERIFICATION_CODE_TTL_MINUTES
        return await self._deliver(
            kind="verification",
            to_email=to_email,
            subject=f"Verify your email - {self.app_name}",
            html_content=self._get_verification_html(verification_code, expire_minutes),
            template_data={
                "title": "Verify Your Email",
                "verification_code": verification_code,
                "expire_minutes": expire_minutes,
            },
            dev_hint=verification_code,
        )

    async def send_welcome_email(self, to_email: str, name: str) -> SendResult:
        return await self._deliver(
            kind="welcome",
            to_email=to_email,
            subject=f"Welcome to {self.app_name}",
            html_content=self._get_welcome_html(name),
            template_data={
                "title": f"Welcome to {self.app_name}",
                "user_name": name,
            },
        )

    async def send_password_reset_email(self, to_email: str, reset_url: str) -> SendResult:
        expire_minutes = self.settings.PASSWORD_RESET_TTL_MINUTES
        return await self._deliver(
            kind="password_reset",
            to_email=to_email,
            subject=f"Reset your password - {self.app_name}",
            html_content=self._get_password_reset_html(reset_url, expire_minutes),
            template_data={
                "title": "Password Reset Request",
                "reset_url": reset_url,
                "expire_minutes": expire_minutes,
            },
            dev_hint=reset_url.rsplit("/", 1)[-1],
        )

    async def send_reset_success_email(self, to_email: str) -> SendResult:
        return await self._deliver(
            kind="password_reset_success",
            to_email=to_email,
            subject=f"Your password was changed - {self.app_name}",
            html_content=self._get_reset_success_html(),
            template_data={"title": "Password Reset Successful"},
        )

    async def _deliver(
        self,
        kind: str,
        to_email: str,
        subject: str,
        html_content: str,
        template_data: Dict[str, Any],
        dev_hint: Optional[str] = None,
    ) -> SendResult:
        if not self.provider.configured:
            hint = f" Secret: {dev_hint[:8]}... (log for dev testing)" if dev_hint else ""
            logger.warning(
                f"{kind} email requested for {to_email} but SendGrid not configured.{hint}"
            )
            return SendResult(success=False, error="Email service not configured")

        template_id = self.settings.SENDGRID_TRANSACTIONAL_TEMPLATE_ID
        if template_id:
            result = await self.provider.send_transactional(
                to_email=to_email,
                template_id=template_id,
                dynamic_data={
                    "subject": subject,
                    "support_email": self.settings.SUPPORT_EMAIL,
                    **template_data,
                },
            )
        else:
            result = await self.provider.send_html(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                category=kind,
            )

        if not result.success:
            logger.error(f"Failed to send {kind} email to {to_email}: {result.error}")
            raise DependencyError(
                "Could not send email, please try again",
                dependency="email",
            )

        logger.info(f"{kind} email sent to {to_email}")
        return result

    # ------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------

    def _layout(self, title: str, body: str, accent: str = "#4f46e5") -> str:
        app_name = html.escape(self.app_name)
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background: {accent}; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
                <h1 style="color: white; margin: 0; font-size: 24px;">{app_name}</h1>
            </div>
            <div style="background: #ffffff; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
                <h2 style="color: #1f2937; margin-top: 0;">{title}</h2>
                {body}
                <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">
                <p style="color: #9ca3af; font-size: 12px; text-align: center;">
                    {app_name}<br>
                    This is an automated message, please do not reply.
                </p>
            </div>
        </body>
        </html>
        """

    def _get_verification_html(self, verification_code: str, expire_minutes: int) -> str:
        body = f"""
                <p>Hello,</p>
                <p>Thank you for signing up! Your verification code is:</p>
                <div style="text-align: center; margin: 30px 0;">
                    <span style="font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #4f46e5;">{html.escape(verification_code)}</span>
                </div>
                <p>Enter this code on the verification page to complete your registration.</p>
                <p style="color: #6b7280; font-size: 14px;">This code will expire in {expire_minutes} minutes for security reasons.</p>
                <p style="color: #6b7280; font-size: 14px;">If you didn't create an account with us, please ignore this email.</p>
        """
        return self._layout("Verify Your Email", body)

    def _get_welcome_html(self, name: str) -> str:
        body = f"""
                <p>Hi {html.escape(name)},</p>
                <p>Your email address is verified and your {html.escape(self.app_name)} account is ready.</p>
                <p style="color: #6b7280; font-size: 14px;">Questions? Reach us at {html.escape(self.settings.SUPPORT_EMAIL)}.</p>
        """
        return self._layout(f"Welcome to {html.escape(self.app_name)}", body)

    def _get_password_reset_html(self, reset_url: str, expire_minutes: int) -> str:
        safe_url = html.escape(reset_url, quote=True)
        body = f"""
                <p>Hello,</p>
                <p>We received a request to reset your password. Click the button below to create a new password:</p>
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{safe_url}" style="background: #4f46e5; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; display: inline-block;">Reset Password</a>
                </div>
                <p style="color: #6b7280; font-size: 14px;">This link will expire in {expire_minutes} minutes.</p>
                <p style="color: #6b7280; font-size: 14px;">If you didn't request this, you can safely ignore this email. Your password will remain unchanged.</p>
        """
        return self._layout("Password Reset Request", body)

    def _get_reset_success_html(self) -> str:
        body = """
                <p>Hello,</p>
                <p>Your password has been reset successfully.</p>
                <p style="color: #6b7280; font-size: 14px;">If you did not make this change, reset your password again right away and contact support.</p>
        """
        return self._layout("Password Reset Successful", body, accent="#16a34a")
