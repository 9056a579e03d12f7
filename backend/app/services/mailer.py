# app/services/mailer.py
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Dict, Optional
from urllib.parse import quote

from anyio import to_thread

from app.core.config import SMTPConfig

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "vi")
DEFAULT_LANGUAGE = "en"

VERIFICATION_COPY: Dict[str, Dict[str, str]] = {
    "en": {
        "subject": "Verify your email address",
        "greeting": "Hello",
        "intro": "Thanks for creating an account with {app_name}. Click the link below to verify your email address.",
        "action": "Verify email",
        "outro": "If you did not create an account, you can safely ignore this email.",
        "footer": "Warm regards, {app_name}",
    },
    "vi": {
        "subject": "Xác minh email của bạn",
        "greeting": "Xin chào",
        "intro": "Cảm ơn bạn đã đăng ký tại {app_name}. Vui lòng nhấp vào liên kết bên dưới để xác minh địa chỉ email của bạn.",
        "action": "Xác minh email",
        "outro": "Nếu bạn không đăng ký tài khoản, hãy bỏ qua email này.",
        "footer": "Xin cảm ơn, {app_name}",
    },
}

RESET_COPY: Dict[str, Dict[str, str]] = {
    "en": {
        "subject": "Reset your password",
        "greeting": "Hello",
        "intro": "We received a request to reset your password. Click the link below to create a new password.",
        "action": "Reset password",
        "outro": "If you did not request a password reset, you can safely ignore this email.",
        "footer": "Warm regards, {app_name}",
    },
    "vi": {
        "subject": "Đặt lại mật khẩu của bạn",
        "greeting": "Xin chào",
        "intro": "Chúng tôi nhận được yêu cầu đặt lại mật khẩu cho tài khoản của bạn. Nhấp vào liên kết bên dưới để tạo mật khẩu mới.",
        "action": "Đặt lại mật khẩu",
        "outro": "Nếu bạn không yêu cầu đặt lại mật khẩu, hãy bỏ qua email này.",
        "footer": "Xin cảm ơn, {app_name}",
    },
}


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


def build_action_url(base_url: str, path: str, token: str) -> str:
    url = f"{base_url.rstrip('/')}{path}"
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}token={quote(token, safe='')}"


def build_email(copy: Dict[str, str], *, app_name: str, action_url: str, first_name: Optional[str]) -> EmailContent:
    name = (first_name or "").strip()
    greeting = f"{copy['greeting']} {name}," if name else f"{copy['greeting']},"
    intro = copy["intro"].format(app_name=app_name)
    footer = copy["footer"].format(app_name=app_name)

    text = f"{greeting}\n\n{intro}\n\n{copy['action']}: {action_url}\n\n{copy['outro']}\n\n{footer}"
    html = (
        f"<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif;\">"
        f"<h1>{escape(copy['subject'])}</h1>"
        f"<p>{escape(greeting)}</p>"
        f"<p>{escape(intro)}</p>"
        f"<p><a href=\"{escape(action_url)}\">{escape(copy['action'])}</a></p>"
        f"<p>{escape(copy['outro'])}</p>"
        f"<hr /><p>{escape(footer)}</p>"
        f"</body></html>"
    )
    return EmailContent(subject=copy["subject"], html=html, text=text)


def _language(language: Optional[str]) -> str:
    return language if language in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


class Mailer:
    """SMTP mailer. Without SMTP settings the message is only logged."""

    def __init__(self, config: SMTPConfig, app_url: str, app_name: str):
        self.config = config
        self.app_url = app_url
        self.app_name = app_name

    def _send_sync(self, message: EmailMessage) -> None:
        smtp_cls = smtplib.SMTP_SSL if self.config.SECURE else smtplib.SMTP
        with smtp_cls(self.config.HOST, self.config.PORT, timeout=30) as smtp:
            if not self.config.SECURE:
                smtp.starttls()
            smtp.login(self.config.USER, self.config.PASSWORD.get_secret_value())
            smtp.send_message(message)

    async def send_mail(self, to: str, content: EmailContent) -> None:
        if not self.config.is_configured:
            logger.info(f"[mailer] Email transport not configured. Email to {to} logged instead: {content.subject}")
            logger.debug(f"[mailer] Email content: {content.text}")
            return

        message = EmailMessage()
        message["Subject"] = content.subject
        message["From"] = formataddr((self.config.FROM_NAME, self.config.FROM_EMAIL))
        message["To"] = to
        message.set_content(content.text)
        message.add_alternative(content.html, subtype="html")

        await to_thread.run_sync(self._send_sync, message)
        logger.info(f"[mailer] Sent '{content.subject}' to {to}")

    async def send_verification_email(self, to: str, token: str, first_name: Optional[str] = None,
                                      language: Optional[str] = None) -> None:
        content = build_email(
            VERIFICATION_COPY[_language(language)],
            app_name=self.app_name,
            action_url=build_action_url(self.app_url, "/verify-email", token),
            first_name=first_name,
        )
        await self.send_mail(to, content)

    async def send_password_reset_email(self, to: str, token: str, first_name: Optional[str] = None,
                                        language: Optional[str] = None) -> None:
        content = build_email(
            RESET_COPY[_language(language)],
            app_name=self.app_name,
            action_url=build_action_url(self.app_url, "/reset-password", token),
            first_name=first_name,
        )
        await self.send_mail(to, content)
