"""Order aggregate: the customer's purchase and its payment lifecycle.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING → CANCELLED

PENDING is left through exactly one gateway outcome: a successful payment
moves the order on to PROCESSING, a failed one (or an explicit cancel, an
intent creation failure, or expiry) cancels it. DELIVERED and CANCELLED are
terminal.

Transition methods never raise for an illegal move. They return a Result
whose failure side is InvalidTransition and leave the order untouched.
"""

import json
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.fields import DateTime, HasMany, Identifier, Integer, String
from returns.result import Failure, Result, Success

from checkout.domain import checkout
from checkout.errors import InvalidTransition
from checkout.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPlaced,
    OrderShipped,
    PaymentIntentAttached,
)

logger = structlog.get_logger(__name__)


class OrderStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    ADMIN = "Admin"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a stored timestamp to an aware UTC datetime.

    Providers may hand back naive datetimes; those are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@checkout.entity(part_of="Order")
class OrderItem:
    """One line of an order.

    ``price`` is the catalog unit price at the moment the order was placed,
    in minor units. Later catalog price changes never touch it.
    """

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Integer(required=True, min_value=0)
    position = Integer(required=True, min_value=0)


@checkout.aggregate
class Order:
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    total = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="USD")
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    address_id = Identifier(required=True)
    payment_intent_id = String(max_length=255)
    payment_status = String(max_length=50)
    last_payment_event_at = DateTime()
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, user_id, address_id, lines, currency="USD"):
        """Create a PENDING order.

        Args:
            user_id: The purchasing user.
            address_id: Shipping address, already checked to belong to the user.
            lines: Ordered list of dicts with product_id, quantity and price
                   (unit price in minor units, taken from the catalog).
            currency: ISO currency code for every amount on the order.
        """
        now = datetime.now(UTC)
        order = cls(
            user_id=str(user_id),
            address_id=str(address_id),
            total=sum(line["price"] * line["quantity"] for line in lines),
            currency=currency,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for position, line in enumerate(lines):
            order.add_items(
                OrderItem(
                    product_id=str(line["product_id"]),
                    quantity=line["quantity"],
                    price=line["price"],
                    position=position,
                )
            )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(line["product_id"]),
                            "quantity": line["quantity"],
                            "price": line["price"],
                        }
                        for line in lines
                    ]
                ),
                total=order.total,
                currency=currency,
                address_id=str(address_id),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def lines(self) -> list[OrderItem]:
        """Items in the order they were placed."""
        return sorted(self.items, key=lambda item: item.position)

    @property
    def is_pending(self) -> bool:
        return OrderStatus(self.status) == OrderStatus.PENDING

    def is_stale(self, occurred_at: datetime) -> bool:
        """True if a payment event at ``occurred_at`` predates the latest one applied."""
        last = as_utc(self.last_payment_event_at)
        return last is not None and as_utc(occurred_at) < last

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _check_transition(self, target: OrderStatus) -> InvalidTransition | None:
        current = OrderStatus(self.status)
        if target in _VALID_TRANSITIONS.get(current, set()):
            return None
        logger.warning(
            "Invalid order transition attempted",
            order_id=str(self.id),
            current_status=current.value,
            attempted_status=target.value,
        )
        return InvalidTransition(order_id=str(self.id), current=current.value, target=target.value)

    # -------------------------------------------------------------------
    # Payment bookkeeping
    # -------------------------------------------------------------------
    def attach_payment_intent(self, intent_id, payment_status) -> Result["Order", InvalidTransition]:
        """Remember the gateway intent created for this order."""
        if not self.is_pending:
            return Failure(
                InvalidTransition(
                    order_id=str(self.id),
                    current=self.status,
                    target=OrderStatus.PROCESSING.value,
                )
            )

        now = datetime.now(UTC)
        self.payment_intent_id = intent_id
        self.payment_status = payment_status
        self.updated_at = now
        self.raise_(
            PaymentIntentAttached(
                order_id=str(self.id),
                intent_id=intent_id,
                payment_status=payment_status,
                amount=self.total,
                attached_at=now,
            )
        )
        return Success(self)

    def record_payment_event(self, payment_status, occurred_at) -> None:
        """Track the latest gateway status and its timestamp."""
        self.payment_status = payment_status
        self.last_payment_event_at = as_utc(occurred_at)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def mark_paid(self) -> Result["Order", InvalidTransition]:
        """PENDING → PROCESSING after a successful payment."""
        invalid = self._check_transition(OrderStatus.PROCESSING)
        if invalid is not None:
            return Failure(invalid)

        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                intent_id=self.payment_intent_id,
                paid_at=now,
            )
        )
        return Success(self)

    def cancel(self, reason, cancelled_by) -> Result["Order", InvalidTransition]:
        """PENDING → CANCELLED. Releasing stock is the caller's job."""
        invalid = self._check_transition(OrderStatus.CANCELLED)
        if invalid is not None:
            return Failure(invalid)

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )
        return Success(self)

    def ship(self) -> Result["Order", InvalidTransition]:
        invalid = self._check_transition(OrderStatus.SHIPPED)
        if invalid is not None:
            return Failure(invalid)

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.updated_at = now
        self.raise_(OrderShipped(order_id=str(self.id), shipped_at=now))
        return Success(self)

    def deliver(self) -> Result["Order", InvalidTransition]:
        invalid = self._check_transition(OrderStatus.DELIVERED)
        if invalid is not None:
            return Failure(invalid)

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.updated_at = now
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))
        return Success(self)
