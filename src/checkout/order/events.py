"""Domain events for the Order aggregate.

Events are immutable, versioned facts. They are collected on the aggregate
and written to the event store when the unit of work commits.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """An order was created from the cart with its stock reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, price}
    total = Integer(required=True)
    currency = String(default="USD")
    address_id = Identifier(required=True)
    placed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class PaymentIntentAttached:
    """A gateway payment intent was created for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    intent_id = String(required=True)
    payment_status = String()
    amount = Integer(required=True)
    attached_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderPaid:
    """The gateway confirmed payment; the order moved to Processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    intent_id = String()
    paid_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its reservations released."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(required=True, max_length=50)
    cancelled_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    shipped_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)
