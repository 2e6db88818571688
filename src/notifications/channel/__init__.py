"""Email channel factory.

Uses the SMTP adapter when a relay host is configured; otherwise the fake
adapter, which only records messages (never allowed in production).
"""

from notifications.channel.email_port import Attachment, EmailPort
from notifications.channel.fake_email import FakeEmailAdapter
from shared.settings import Settings


def build_email_channel(settings: Settings) -> EmailPort:
    if settings.SMTP_HOST:
        from notifications.channel.smtp_email import SmtpEmailAdapter

        return SmtpEmailAdapter(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            sender_address=settings.mail_sender,
            sender_name=settings.MAIL_FROM_NAME,
        )

    if settings.is_production:
        raise ValueError("SMTP_HOST must be set in production")
    return FakeEmailAdapter()


__all__ = ["Attachment", "EmailPort", "FakeEmailAdapter", "build_email_channel"]
