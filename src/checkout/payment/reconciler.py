"""Webhook Reconciler: applies gateway payment outcomes to orders.

Gateways deliver callbacks at least once and in no particular order. Each
callback is verified, then handled in a single unit of work that both
applies the outcome and records the event id. That makes redelivery
harmless:

    already recorded                → Ack("duplicate"), nothing applied
    no order for the intent         → recorded as unknown_intent
    older than the last applied one → recorded as stale
    succeeded, order PENDING        → PENDING → PROCESSING
    failed, order PENDING           → PENDING → CANCELLED, stock released
    anything else                   → recorded as noop

An order never moves backwards because of a late callback.
"""

from dataclasses import dataclass

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from returns.pipeline import is_successful
from returns.result import Failure, Result, Success

from checkout.errors import ConcurrentUpdate, Rejected
from checkout.gateway.port import PaymentOutcome
from checkout.order.cancellation import cancel_and_release
from checkout.order.order import CancellationActor, Order
from checkout.order.queries import find_by_payment_intent, find_order
from checkout.payment.processed_event import Disposition, ProcessedPaymentEvent

logger = structlog.get_logger(__name__)

DUPLICATE = "duplicate"
PAYMENT_FAILED_REASON = "payment_failed"
COMMIT_ATTEMPTS = 3


@dataclass(frozen=True)
class Ack:
    """The callback is durably recorded; the gateway can stop retrying."""

    event_id: str
    disposition: str
    order_id: str | None = None


class WebhookReconciler:
    def __init__(self, domain, gateway, ledger, mailer) -> None:
        self._domain = domain
        self._gateway = gateway
        self._ledger = ledger
        self._mailer = mailer

    def handle(self, raw_payload: bytes, signature: str) -> Result[Ack, Rejected | ConcurrentUpdate]:
        verified = self._gateway.verify_and_parse_callback(raw_payload, signature)
        if not is_successful(verified):
            failure = verified.failure()
            logger.warning("Payment callback rejected", correlation_id=failure.correlation_id)
            return Failure(Rejected(correlation_id=failure.correlation_id, reason="signature_invalid"))
        event = verified.unwrap()

        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            try:
                ack, newly_paid = self._process(event)
            except ExpectedVersionError:
                logger.info(
                    "Order changed while applying payment callback, retrying",
                    event_id=event.event_id,
                    intent_id=event.intent_id,
                    attempt=attempt,
                )
                continue

            if newly_paid is not None:
                self._send_confirmation(newly_paid)
            return Success(ack)

        # Not acknowledged, so the gateway delivers the callback again later
        logger.warning(
            "Payment callback left unprocessed after repeated conflicts",
            event_id=event.event_id,
            intent_id=event.intent_id,
        )
        return Failure(ConcurrentUpdate(resource="Payment callback", identifier=event.event_id))

    def _process(self, event) -> tuple[Ack, Order | None]:
        """Record ``event`` and apply it, all in one unit of work."""
        newly_paid = None
        with UnitOfWork():
            events = self._domain.repository_for(ProcessedPaymentEvent)
            if self._already_processed(events, event.event_id):
                logger.info("Duplicate payment callback", event_id=event.event_id, intent_id=event.intent_id)
                return Ack(event_id=event.event_id, disposition=DUPLICATE), None

            order = self._resolve_order(event)
            if order is None:
                logger.warning(
                    "Payment callback for unknown intent",
                    event_id=event.event_id,
                    intent_id=event.intent_id,
                    outcome=event.outcome.value,
                )
                disposition = Disposition.UNKNOWN_INTENT
            else:
                disposition = self._apply(order, event)
                if disposition == Disposition.APPLIED and event.outcome == PaymentOutcome.SUCCEEDED:
                    newly_paid = order

            events.add(ProcessedPaymentEvent.record(event, disposition, order_id=order.id if order else None))

        logger.info(
            "Payment callback processed",
            event_id=event.event_id,
            intent_id=event.intent_id,
            outcome=event.outcome.value,
            disposition=disposition.value,
        )
        ack = Ack(
            event_id=event.event_id,
            disposition=disposition.value,
            order_id=str(order.id) if order else None,
        )
        return ack, newly_paid

    def _resolve_order(self, event) -> Order | None:
        """Find the order by intent id, else by the order id in the intent's metadata.

        The metadata path covers an intent whose id never made it onto the
        order, e.g. when the process stopped between creating the intent and
        attaching it.
        """
        order = find_by_payment_intent(self._domain, event.intent_id)
        if order is not None or not event.order_id:
            return order

        found = find_order(self._domain, event.order_id)
        if not is_successful(found):
            return None
        order = found.unwrap()
        if order.payment_intent_id and order.payment_intent_id != event.intent_id:
            return None

        if not order.payment_intent_id and order.is_pending:
            # Persisted with the outcome below
            order.attach_payment_intent(event.intent_id, order.payment_status or "unknown")
        logger.info(
            "Payment callback matched through intent metadata",
            event_id=event.event_id,
            intent_id=event.intent_id,
            order_id=str(order.id),
        )
        return order

    def _already_processed(self, events, event_id) -> bool:
        try:
            events.get(event_id)
        except ObjectNotFoundError:
            return False
        return True

    def _apply(self, order, event) -> Disposition:
        if event.outcome == PaymentOutcome.IGNORED:
            return Disposition.NOOP

        if order.is_stale(event.occurred_at):
            logger.info(
                "Stale payment callback ignored",
                order_id=str(order.id),
                event_id=event.event_id,
                occurred_at=event.occurred_at.isoformat(),
            )
            return Disposition.STALE

        if not order.is_pending:
            return Disposition.NOOP

        if event.outcome == PaymentOutcome.SUCCEEDED:
            result = order.mark_paid()
        else:
            result = cancel_and_release(
                self._ledger,
                order,
                reason=PAYMENT_FAILED_REASON,
                cancelled_by=CancellationActor.SYSTEM.value,
            )
        if not is_successful(result):
            return Disposition.NOOP

        order.record_payment_event(event.outcome.value, event.occurred_at)
        self._domain.repository_for(Order).add(order)
        return Disposition.APPLIED

    def _send_confirmation(self, order) -> None:
        try:
            self._mailer.send_order_confirmation(order)
        except Exception:
            logger.exception("Order confirmation could not be sent", order_id=str(order.id))
