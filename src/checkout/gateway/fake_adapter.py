"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to succeed or fail, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Callbacks are signed the way most gateways sign them: an HMAC-SHA256 of the
raw body under a shared webhook secret, sent as ``sha256=<hex digest>``.
``sign()`` and ``build_event()`` produce such callbacks for tests.
"""

import hashlib
import hmac
import json
from datetime import UTC, datetime
from uuid import uuid4

import structlog
from returns.result import Failure, Result, Success

from checkout.errors import GatewayUnavailable, InvalidGatewayRequest, SignatureInvalid
from checkout.gateway.port import (
    PaymentEvent,
    PaymentGateway,
    PaymentIntent,
    PaymentOutcome,
    event_from_payload,
)

logger = structlog.get_logger(__name__)

FAILURE_KINDS = ("unavailable", "invalid_request")

_EVENT_TYPES = {
    PaymentOutcome.SUCCEEDED: "payment_intent.succeeded",
    PaymentOutcome.FAILED: "payment_intent.payment_failed",
}


def correlation_id(raw_payload: bytes) -> str:
    return hashlib.sha256(raw_payload).hexdigest()[:16]


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = "whsec_development") -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_kind: str = "unavailable"
        self.failure_reason: str = "Gateway timeout"
        self.calls: list[dict] = []
        self._intents: dict[str, str] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Gateway timeout",
        failure_kind: str = "unavailable",
    ) -> None:
        """Configure gateway behavior at runtime."""
        if failure_kind not in FAILURE_KINDS:
            raise ValueError(f"Unknown failure kind: {failure_kind}")
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failure_kind = failure_kind

    def create_intent(
        self,
        order_id: str,
        amount: int,
        currency: str,
    ) -> Result[PaymentIntent, GatewayUnavailable | InvalidGatewayRequest]:
        call = {
            "method": "create_intent",
            "order_id": str(order_id),
            "amount": amount,
            "currency": currency,
        }
        self.calls.append(call)

        if not self.should_succeed:
            if self.failure_kind == "invalid_request":
                return Failure(InvalidGatewayRequest(reason=self.failure_reason))
            return Failure(GatewayUnavailable(reason=self.failure_reason))
        if amount <= 0:
            return Failure(InvalidGatewayRequest(reason="Amount must be positive"))

        # Same order, same intent: mirrors an idempotency key derived from the order id
        intent_id = self._intents.setdefault(str(order_id), f"pi_fake_{uuid4().hex[:16]}")
        return Success(
            PaymentIntent(
                intent_id=intent_id,
                client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
                status="requires_payment_method",
            )
        )

    def sign(self, raw_payload: bytes) -> str:
        digest = hmac.new(self.webhook_secret.encode(), raw_payload, hashlib.sha256).hexdigest()
        return f"sha256={digest}"

    def build_event(
        self,
        intent_id: str,
        outcome: PaymentOutcome,
        event_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> tuple[bytes, str]:
        """Return a signed callback body and its signature header value."""
        occurred_at = occurred_at or datetime.now(UTC)
        intent = {"id": intent_id}
        order_id = next((order for order, known in self._intents.items() if known == intent_id), None)
        if order_id is not None:
            intent["metadata"] = {"order_id": order_id}
        payload = {
            "id": event_id or f"evt_fake_{uuid4().hex[:16]}",
            "type": _EVENT_TYPES.get(outcome, "charge.updated"),
            "created": int(occurred_at.timestamp()),
            "data": {"object": intent},
        }
        raw = json.dumps(payload).encode()
        return raw, self.sign(raw)

    def verify_and_parse_callback(self, raw_payload: bytes, signature: str) -> Result[PaymentEvent, SignatureInvalid]:
        cid = correlation_id(raw_payload)
        if not signature or not hmac.compare_digest(self.sign(raw_payload), signature):
            return Failure(SignatureInvalid(correlation_id=cid))

        try:
            data = json.loads(raw_payload)
        except ValueError:
            data = None
        event = event_from_payload(data) if isinstance(data, dict) else None
        if event is None:
            logger.warning("Signed callback is not a payment event", correlation_id=cid)
            return Failure(SignatureInvalid(correlation_id=cid))
        return Success(event)
