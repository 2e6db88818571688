"""Payment gateway factory.

``build_gateway`` picks the implementation once at startup:
- StripeGateway when a secret key is configured
- FakeGateway for development and testing (never in production)
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway
from shared.errors import GatewayError
from shared.settings import Settings


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.STRIPE_SECRET_KEY:
        if settings.is_production and not settings.STRIPE_WEBHOOK_SECRET:
            raise GatewayError("STRIPE_WEBHOOK_SECRET must be set in production")

        from payments.gateway.stripe_adapter import StripeGateway

        return StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)

    if settings.is_production:
        raise GatewayError("STRIPE_SECRET_KEY must be set in production")
    return FakeGateway()


__all__ = ["PaymentGateway", "FakeGateway", "build_gateway"]
