"""Payment gateway factory.

``build_gateway(settings)`` picks the implementation from configuration:
- FakeGateway for development and testing
- StripeGateway for production
"""

from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.port import PaymentEvent, PaymentGateway, PaymentIntent, PaymentOutcome
from checkout.gateway.stripe_adapter import StripeGateway


def build_gateway(settings) -> PaymentGateway:
    if settings.gateway == "stripe":
        return StripeGateway(api_key=settings.gateway_secret_key, webhook_secret=settings.webhook_secret)
    if settings.gateway == "fake":
        return FakeGateway(webhook_secret=settings.webhook_secret)
    raise ValueError(f"Unknown payment gateway: {settings.gateway}")


__all__ = [
    "FakeGateway",
    "PaymentEvent",
    "PaymentGateway",
    "PaymentIntent",
    "PaymentOutcome",
    "StripeGateway",
    "build_gateway",
]
