"""ProcessedPaymentEvent aggregate: idempotency record for gateway callbacks.

One record per gateway event id, written in the same unit of work that
applies (or deliberately skips) the event. A redelivered callback finds its
record and is acknowledged without being applied again.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String

from checkout.domain import checkout


class Disposition(Enum):
    APPLIED = "applied"
    STALE = "stale"
    NOOP = "noop"
    UNKNOWN_INTENT = "unknown_intent"


@checkout.aggregate
class ProcessedPaymentEvent:
    """The aggregate id is the gateway's event id."""

    intent_id = String(required=True, max_length=255)
    order_id = Identifier()
    outcome = String(required=True, max_length=50)
    occurred_at = DateTime(required=True)
    processed_at = DateTime(required=True)
    disposition = String(choices=Disposition, required=True)

    @classmethod
    def record(cls, event, disposition: Disposition, order_id=None):
        return cls(
            id=event.event_id,
            intent_id=event.intent_id,
            order_id=str(order_id) if order_id is not None else None,
            outcome=event.outcome.value,
            occurred_at=event.occurred_at,
            processed_at=datetime.now(UTC),
            disposition=disposition.value,
        )
