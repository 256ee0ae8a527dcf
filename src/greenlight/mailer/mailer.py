"""SMTP mailer.

Sends multipart (plain + HTML) messages rendered from mailer.templates.
smtplib is blocking, so the send runs in a worker thread. Handlers never
await delivery: they schedule send_in_background() as a FastAPI
BackgroundTask, which logs failures instead of raising them, because by
then the response has already gone out.
"""

import html
import smtplib
from email.message import EmailMessage
from typing import Any

import structlog
from starlette.concurrency import run_in_threadpool

from greenlight.config import settings
from greenlight.mailer.templates import TEMPLATES

logger = structlog.get_logger()


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def render(self, recipient: str, template: str, data: dict[str, Any]) -> EmailMessage:
        tmpl = TEMPLATES[template]
        escaped = {key: html.escape(str(value)) for key, value in data.items()}

        msg = EmailMessage()
        msg["To"] = recipient
        msg["From"] = self.sender
        msg["Subject"] = tmpl.subject.format(**data)
        msg.set_content(tmpl.plain.format(**data))
        msg.add_alternative(tmpl.html.format(**escaped), subtype="html")
        return msg

    def send(self, recipient: str, template: str, data: dict[str, Any]) -> None:
        """Render and deliver one message. Blocking."""
        msg = self.render(recipient, template, data)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.username:
                smtp.starttls()
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send_in_background(self, recipient: str, template: str, data: dict[str, Any]) -> None:
        try:
            await run_in_threadpool(self.send, recipient, template, data)
        except Exception as e:
            # Response already sent; there is nobody left to report to.
            logger.error("mailer.send_failed", template=template, error=str(e))
        else:
            logger.info("mailer.sent", template=template)


def get_mailer() -> Mailer:
    """FastAPI dependency — the process-wide SMTP mailer."""
    return Mailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        sender=settings.smtp_sender,
        timeout=settings.smtp_timeout_seconds,
    )
