"""Payment intent creation: the call site of the gateway's create_intent.

The gateway is called with no unit of work open, so no database
transaction is held across a network round trip. The outcome is then
written in a short unit of work of its own. If the gateway refuses or
cannot be reached, the order is cancelled and its reservations released
right away; an order that can never be paid must not sit on stock.
"""

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError
from returns.pipeline import is_successful
from returns.result import Failure, Result, Success

from checkout.errors import (
    ConcurrentUpdate,
    GatewayUnavailable,
    InvalidGatewayRequest,
    InvalidTransition,
    OrderNotFound,
)
from checkout.gateway.port import PaymentIntent
from checkout.order.cancellation import cancel_and_release
from checkout.order.order import CancellationActor, Order, OrderStatus
from checkout.order.queries import find_order

logger = structlog.get_logger(__name__)

PAYMENT_INITIATION_FAILED = "payment_initiation_failed"
COMMIT_ATTEMPTS = 3


class PaymentIntents:
    def __init__(self, domain, gateway, ledger, settings) -> None:
        self._domain = domain
        self._gateway = gateway
        self._ledger = ledger
        self._settings = settings

    def create_for_order(
        self, order_id, user_id=None
    ) -> Result[
        PaymentIntent, OrderNotFound | InvalidTransition | GatewayUnavailable | InvalidGatewayRequest | ConcurrentUpdate
    ]:
        found = find_order(self._domain, order_id, user_id=user_id)
        if not is_successful(found):
            return found
        order = found.unwrap()

        if not order.is_pending:
            logger.info(
                "Payment requested for order that is not pending",
                order_id=str(order.id),
                status=order.status,
            )
            return Failure(
                InvalidTransition(
                    order_id=str(order.id),
                    current=order.status,
                    target=OrderStatus.PROCESSING.value,
                )
            )

        created = self._gateway.create_intent(str(order.id), order.total, order.currency)
        if not is_successful(created):
            self._compensate(str(order.id), created.failure())
            return created
        intent = created.unwrap()

        for _ in range(COMMIT_ATTEMPTS):
            try:
                with UnitOfWork():
                    repo = self._domain.repository_for(Order)
                    order = repo.get(str(order.id))
                    attached = order.attach_payment_intent(intent.intent_id, intent.status)
                    if not is_successful(attached):
                        # A callback or a cancellation got there first
                        return attached
                    repo.add(order)
                break
            except ExpectedVersionError:
                logger.info("Order changed while attaching payment intent, retrying", order_id=str(order.id))
        else:
            # The callback still finds the order through the intent metadata
            logger.warning(
                "Payment intent created but not attached",
                order_id=str(order.id),
                intent_id=intent.intent_id,
            )
            return Failure(ConcurrentUpdate(resource="Order", identifier=str(order.id)))

        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            intent_id=intent.intent_id,
            amount=order.total,
            currency=order.currency,
        )
        return Success(intent)

    def _compensate(self, order_id: str, failure) -> None:
        logger.warning(
            "Payment intent creation failed, cancelling order",
            order_id=order_id,
            reason=failure.message,
        )
        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            try:
                with UnitOfWork():
                    repo = self._domain.repository_for(Order)
                    order = repo.get(order_id)
                    result = cancel_and_release(
                        self._ledger,
                        order,
                        reason=PAYMENT_INITIATION_FAILED,
                        cancelled_by=CancellationActor.SYSTEM.value,
                    )
                    if is_successful(result):
                        repo.add(order)
                return
            except ExpectedVersionError:
                logger.info("Order changed while cancelling, retrying", order_id=order_id, attempt=attempt)

        # Left PENDING; the expiry job releases the stock later
        logger.error("Order could not be cancelled after payment failure", order_id=order_id)
