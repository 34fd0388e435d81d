"""Magic link delivery over email."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape

import aiosmtplib
import httpx

from linkauth.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class MagicLinkEmail:
    """A rendered magic link message."""

    to: str
    subject: str
    text: str
    html: str


def render_magic_link_email(
    to: str, magic_link: str, name: str | None, expiration_minutes: int
) -> MagicLinkEmail:
    """Render the login email. The display name is escaped in the HTML part."""
    greeting = f"Hi {name}!" if name else "Hi!"
    text = (
        f"{greeting}\n\n"
        f"Click this link to log in: {magic_link}\n\n"
        f"This link expires in {expiration_minutes} minutes and can only be used once.\n\n"
        "If you didn't request this, please ignore this email.\n"
    )
    link = escape(magic_link, quote=True)
    html = (
        '<!DOCTYPE html>\n<html><body style="font-family: sans-serif; line-height: 1.6;">\n'
        f"<h2>{escape(greeting)}</h2>\n"
        f'<p><a href="{link}">Log in</a></p>\n'
        f"<p>This link expires in {expiration_minutes} minutes and can only be used once.</p>\n"
        f'<p style="color: #666;">Or paste this into your browser: {link}</p>\n'
        "<p style=\"color: #666;\">If you didn't request this, please ignore this email.</p>\n"
        "</body></html>\n"
    )
    return MagicLinkEmail(to=to, subject="Your Login Link", text=text, html=html)


class EmailBackend(ABC):
    """Transport for a rendered message. Returns False when delivery failed."""

    @abstractmethod
    async def send(self, email: MagicLinkEmail) -> bool: ...


class ConsoleEmailBackend(EmailBackend):
    """Logs the message instead of sending it (development)."""

    async def send(self, email: MagicLinkEmail) -> bool:
        logger.info(f"Magic link email (console backend, not sent) to {email.to}:\n{email.text}")
        return True


class SMTPEmailBackend(EmailBackend):
    """Sends through an SMTP relay with aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.timeout = timeout

    def build_message(self, email: MagicLinkEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")
        return message

    async def send(self, email: MagicLinkEmail) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(email),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP delivery to {email.to} failed: {e}")
            return False
        logger.info(f"Magic link email sent via SMTP to {email.to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Sends through the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str, timeout: float = 15.0):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout

    async def send(self, email: MagicLinkEmail) -> bool:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.from_address,
                        "to": [email.to],
                        "subject": email.subject,
                        "html": email.html,
                        "text": email.text,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend rejected mail to {email.to}: {e.response.status_code} {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Resend request for {email.to} failed: {e!r}")
                return False
        logger.info(f"Magic link email sent via Resend to {email.to}")
        return True


def get_email_backend() -> EmailBackend:
    """Get the configured email backend."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    if settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )
    if settings.email_backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


class EmailService:
    """The production notifier: renders the login email and hands it to a backend."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_magic_link(self, to: str, magic_link: str, name: str | None = None) -> bool:
        email = render_magic_link_email(
            to, magic_link, name, settings.magic_link_expiration_minutes
        )
        return await self.backend.send(email)


email_service = EmailService()
