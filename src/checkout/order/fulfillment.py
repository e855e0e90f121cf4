"""Order fulfillment: ship and deliver commands and their handler."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain
from returns.pipeline import is_successful
from returns.result import Result, Success

from checkout.domain import checkout
from checkout.errors import InvalidTransition, OrderNotFound
from checkout.order.order import Order
from checkout.order.queries import find_order


@checkout.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)


@checkout.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)


@checkout.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(ShipOrder)
    def ship_order(self, command) -> Result[Order, OrderNotFound | InvalidTransition]:
        return self._transition(command.order_id, Order.ship)

    @handle(DeliverOrder)
    def deliver_order(self, command) -> Result[Order, OrderNotFound | InvalidTransition]:
        return self._transition(command.order_id, Order.deliver)

    def _transition(self, order_id, step):
        found = find_order(current_domain, order_id)
        if not is_successful(found):
            return found
        order = found.unwrap()

        result = step(order)
        if is_successful(result):
            current_domain.repository_for(Order).add(order)
            return Success(order)
        return result
