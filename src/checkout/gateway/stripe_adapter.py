"""Stripe payment gateway adapter.

Uses the stripe-python SDK to:
- Create PaymentIntents carrying the order id in metadata
- Verify webhook signatures with Stripe's signing secret

The API key is passed per call rather than set on the ``stripe`` module, so
several adapters with different keys can live in one process.
"""

import json

import stripe
import structlog
from returns.result import Failure, Result, Success

from checkout.errors import GatewayUnavailable, InvalidGatewayRequest, SignatureInvalid
from checkout.gateway.fake_adapter import correlation_id
from checkout.gateway.port import PaymentEvent, PaymentGateway, PaymentIntent, event_from_payload

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_intent(
        self,
        order_id: str,
        amount: int,
        currency: str,
    ) -> Result[PaymentIntent, GatewayUnavailable | InvalidGatewayRequest]:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                metadata={"order_id": str(order_id)},
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"order-{order_id}-{amount}",
                api_key=self.api_key,
            )
        except (stripe.InvalidRequestError, stripe.CardError) as exc:
            logger.warning("Stripe rejected payment intent", order_id=str(order_id), error=exc.user_message or str(exc))
            return Failure(InvalidGatewayRequest(reason=exc.user_message or str(exc)))
        except stripe.StripeError as exc:
            logger.error("Stripe unavailable", order_id=str(order_id), error=str(exc))
            return Failure(GatewayUnavailable(reason=type(exc).__name__))

        return Success(
            PaymentIntent(
                intent_id=intent.id,
                client_secret=intent.client_secret,
                status=intent.status,
            )
        )

    def verify_and_parse_callback(self, raw_payload: bytes, signature: str) -> Result[PaymentEvent, SignatureInvalid]:
        cid = correlation_id(raw_payload)
        try:
            stripe.Webhook.construct_event(raw_payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError):
            return Failure(SignatureInvalid(correlation_id=cid))

        event = event_from_payload(json.loads(raw_payload))
        if event is None:
            logger.warning("Signed Stripe callback is not a payment event", correlation_id=cid)
            return Failure(SignatureInvalid(correlation_id=cid))
        return Success(event)
