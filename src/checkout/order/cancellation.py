"""Order cancellation: releasing reservations, plus the CancelOrder command.

``cancel_and_release`` is the single compensation path: payment failure,
intent creation failure, explicit cancellation and expiry all come through
it, so a cancelled order always gives its stock back.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from returns.pipeline import is_successful
from returns.result import Result, Success

from checkout.domain import checkout
from checkout.errors import InvalidTransition, OrderNotFound
from checkout.inventory.ledger import InventoryLedger
from checkout.order.order import CancellationActor, Order
from checkout.order.queries import find_order

logger = structlog.get_logger(__name__)


def cancel_and_release(ledger, order, reason, cancelled_by) -> Result[Order, InvalidTransition]:
    """Cancel ``order`` and return every line's quantity to stock.

    Runs inside the caller's unit of work; the caller persists the order.
    """
    cancelled = order.cancel(reason=reason, cancelled_by=cancelled_by)
    if not is_successful(cancelled):
        return cancelled

    for item in order.lines:
        released = ledger.release(item.product_id, item.quantity)
        if not is_successful(released):
            logger.error(
                "Could not release reservation for cancelled order",
                order_id=str(order.id),
                product_id=str(item.product_id),
                quantity=item.quantity,
                reason=released.failure().message,
            )

    logger.info(
        "Order cancelled",
        order_id=str(order.id),
        reason=reason,
        cancelled_by=cancelled_by,
    )
    return Success(order)


@checkout.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    user_id = Identifier()  # When set, the order must belong to this user
    reason = String(required=True, max_length=500)
    cancelled_by = String(default=CancellationActor.CUSTOMER.value, max_length=50)


@checkout.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command) -> Result[Order, OrderNotFound | InvalidTransition]:
        found = find_order(current_domain, command.order_id, user_id=command.user_id)
        if not is_successful(found):
            return found
        order = found.unwrap()

        result = cancel_and_release(
            InventoryLedger(current_domain),
            order,
            reason=command.reason,
            cancelled_by=command.cancelled_by,
        )
        if not is_successful(result):
            return result

        current_domain.repository_for(Order).add(order)
        return Success(order)
