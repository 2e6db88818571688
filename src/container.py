"""Process-wide collaborators, built once at startup.

Nothing here is a module-level singleton: ``build_services`` returns a fresh
``Services`` bundle that the app stores on ``app.state`` and tests build
from fakes.
"""

from dataclasses import dataclass

from notifications.channel import EmailPort, build_email_channel
from notifications.jobs import BackgroundJobs
from notifications.receipt.dispatch import ReceiptMailer
from notifications.receipt.pdf import ReceiptPdfConverter
from ordering.order.lifecycle import OrderLifecycle
from ordering.store import OrderStore, build_store
from payments.gateway import PaymentGateway, build_gateway
from shared.settings import Settings


@dataclass
class Services:
    settings: Settings
    store: OrderStore
    gateway: PaymentGateway
    email: EmailPort
    mailer: ReceiptMailer
    jobs: BackgroundJobs
    lifecycle: OrderLifecycle


def assemble_services(
    settings: Settings,
    store: OrderStore,
    gateway: PaymentGateway,
    email: EmailPort,
    converter: ReceiptPdfConverter | None = None,
) -> Services:
    jobs = BackgroundJobs()
    mailer = ReceiptMailer(email, converter or ReceiptPdfConverter(), settings.public_site_url)
    return Services(
        settings=settings,
        store=store,
        gateway=gateway,
        email=email,
        mailer=mailer,
        jobs=jobs,
        lifecycle=OrderLifecycle(store=store, gateway=gateway, mailer=mailer, jobs=jobs),
    )


def build_services(settings: Settings) -> Services:
    """Construct real adapters from settings; raises if any cannot be built."""
    return assemble_services(
        settings,
        store=build_store(settings),
        gateway=build_gateway(settings),
        email=build_email_channel(settings),
    )
