"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from returns.result import Result

from checkout.errors import GatewayUnavailable, InvalidGatewayRequest, SignatureInvalid


class PaymentOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentIntent:
    """A gateway-side payment intent the client completes out of band."""

    intent_id: str
    client_secret: str
    status: str


@dataclass(frozen=True)
class PaymentEvent:
    """A verified payment outcome reported by the gateway."""

    event_id: str
    intent_id: str
    outcome: PaymentOutcome
    occurred_at: datetime
    order_id: str | None = None  # metadata.order_id stamped on the intent at creation


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(
        self,
        order_id: str,
        amount: int,
        currency: str,
    ) -> Result[PaymentIntent, GatewayUnavailable | InvalidGatewayRequest]:
        """Create a payment intent for ``amount`` minor units, tagged with the order id."""
        ...

    @abstractmethod
    def verify_and_parse_callback(
        self,
        raw_payload: bytes,
        signature: str,
    ) -> Result[PaymentEvent, SignatureInvalid]:
        """Authenticate a callback and extract the payment outcome it reports."""
        ...


# Gateway event types that carry a payment outcome. Anything else is
# acknowledged and recorded without touching an order.
_EVENT_OUTCOMES = {
    "payment_intent.succeeded": PaymentOutcome.SUCCEEDED,
    "payment_intent.payment_failed": PaymentOutcome.FAILED,
}


def event_from_payload(data: dict) -> PaymentEvent | None:
    """Map a decoded gateway event body onto a PaymentEvent.

    Both adapters speak the same event shape:
    ``{"id", "type", "created", "data": {"object": {"id", "metadata", ...}}}``.
    Returns None when the body is not a payment event at all.
    """
    try:
        event_id = str(data["id"])
        intent_id = str(data["data"]["object"]["id"])
        created = int(data["created"])
    except (KeyError, TypeError, ValueError):
        return None

    metadata = data["data"]["object"].get("metadata") or {}
    order_id = metadata.get("order_id") if isinstance(metadata, dict) else None

    return PaymentEvent(
        event_id=event_id,
        intent_id=intent_id,
        order_id=str(order_id) if order_id else None,
        outcome=_EVENT_OUTCOMES.get(data.get("type"), PaymentOutcome.IGNORED),
        occurred_at=datetime.fromtimestamp(created, tz=UTC),
    )
