"""Channel primitives: deliver already-formatted text to one destination.

Each channel raises :class:`NotificationDeliveryError` on failure and returns a
:class:`SendReceipt` on success. Policy (preferences, severity, bookkeeping)
lives in the dispatcher.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel

from inbox_digest.config import (
    HTTP_TIMEOUT_SECONDS,
    SMTP_FROM_EMAIL,
    SMTP_FROM_NAME,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USER,
    TWILIO_ACCOUNT_SID,
    TWILIO_API_BASE_URL,
    TWILIO_AUTH_TOKEN,
    TWILIO_WHATSAPP_FROM,
)
from inbox_digest.errors import NotificationDeliveryError
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.notifications.channels")


class SendReceipt(BaseModel):
    external_id: Optional[str] = None
    detail: str = ""


class NotificationChannel(Protocol):
    name: str

    async def send(self, destination: str, content: str, subject: str) -> SendReceipt:
        ...


class ConsoleChannel:
    """Prints the notification instead of sending it (local runs, and channels with no backend configured)."""

    def __init__(self, name: str = "email", console: Optional[Console] = None):
        self.name = name
        self._console = console or Console()

    async def send(self, destination: str, content: str, subject: str) -> SendReceipt:
        self._console.print(
            Panel(
                content,
                title=f"[bold]{subject}[/bold]",
                subtitle=f"{self.name} -> {destination}",
                expand=False,
            )
        )
        logger.info("channel.console.sent", channel=self.name, destination=destination)
        return SendReceipt(detail=f"{self.name} notification printed to console")


class SmtpEmailChannel:
    """Plain-text email over SMTP with STARTTLS. smtplib blocks, so it runs in a worker thread."""

    name = "email"

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        from_email: str = SMTP_FROM_EMAIL,
        from_name: str = SMTP_FROM_NAME,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from_email = from_email
        self._from_name = from_name
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return all([self._host, self._user, self._password, self._from_email])

    def _build(self, destination: str, content: str, subject: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self._from_name, self._from_email))
        msg["To"] = destination
        msg.attach(MIMEText(content, "plain", "utf-8"))
        return msg

    def _send_sync(self, destination: str, content: str, subject: str) -> None:
        msg = self._build(destination, content, subject)
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            server.login(self._user, self._password)
            server.send_message(msg)

    async def send(self, destination: str, content: str, subject: str) -> SendReceipt:
        if not self.configured:
            raise NotificationDeliveryError("SMTP not configured. Set SMTP_* environment variables.")
        try:
            await asyncio.to_thread(self._send_sync, destination, content, subject)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("channel.smtp.failed", destination=destination, error=str(e))
            raise NotificationDeliveryError(f"SMTP send failed: {e}") from e
        logger.info("channel.smtp.sent", destination=destination)
        return SendReceipt(detail=f"Email sent via {self._host}")


class TwilioWhatsAppChannel:
    """WhatsApp messages through the Twilio Messages API."""

    name = "whatsapp"

    def __init__(
        self,
        account_sid: str = TWILIO_ACCOUNT_SID,
        auth_token: str = TWILIO_AUTH_TOKEN,
        from_number: str = TWILIO_WHATSAPP_FROM,
        base_url: str = TWILIO_API_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return all([self._account_sid, self._auth_token, self._from_number])

    async def send(self, destination: str, content: str, subject: str) -> SendReceipt:
        if not self.configured:
            raise NotificationDeliveryError("Twilio not configured. Set TWILIO_* environment variables.")
        url = f"{self._base_url}/Accounts/{self._account_sid}/Messages.json"
        data = {
            "From": f"whatsapp:{self._from_number}",
            "To": f"whatsapp:{destination}",
            "Body": content,
        }
        auth = (self._account_sid, self._auth_token)
        try:
            if self._http is not None:
                response = await self._http.post(url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, data=data, auth=auth)
        except httpx.HTTPError as e:
            logger.error("channel.whatsapp.failed", destination=destination, error=str(e))
            raise NotificationDeliveryError(f"Twilio request failed: {e}") from e
        if response.status_code >= 400:
            logger.error("channel.whatsapp.rejected", status=response.status_code, body=response.text[:300])
            raise NotificationDeliveryError(f"Twilio returned {response.status_code}: {response.text[:200]}")
        try:
            body = response.json()
        except ValueError:
            body = None
        sid = body.get("sid") if isinstance(body, dict) else None
        logger.info("channel.whatsapp.sent", destination=destination, sid=sid)
        return SendReceipt(external_id=sid, detail="WhatsApp message queued")
