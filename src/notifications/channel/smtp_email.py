"""SMTP email adapter.

smtplib is blocking, so each send runs in a worker thread to keep the event
loop free while the relay talks.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

import structlog

from notifications.channel.email_port import Attachment, EmailPort

logger = structlog.get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 30


class SmtpEmailAdapter(EmailPort):
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        sender_address: str = "",
        sender_name: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = formataddr((sender_name, sender_address)) if sender_name else sender_address

    def build_message(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.sender.rsplit("@", 1)[-1].rstrip(">") or None)
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        for attachment in attachments or []:
            maintype, _, subtype = attachment.content_type.partition("/")
            message.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return message

    def _deliver(self, message: EmailMessage) -> None:
        if self.port == 465:
            client = smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        with client:
            if self.use_tls and self.port != 465:
                client.starttls()
            if self.username:
                client.login(self.username, self.password)
            client.send_message(message)

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> dict:
        message = self.build_message(to, subject, body, html_body, attachments)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("smtp_send_failed", host=self.host, error=str(exc))
            return {"message_id": None, "status": "failed", "error": str(exc)}
        return {"message_id": message["Message-ID"], "status": "sent"}
