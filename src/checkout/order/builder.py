"""Order Aggregate Builder: turns cart contents into a PENDING order.

Validates the cart, prices every line from the catalog, reserves stock for
every line and persists the order, all inside one unit of work. Either the
order and all of its reservations are committed together or nothing is.
"""

from dataclasses import dataclass

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError
from returns.pipeline import is_successful
from returns.result import Failure, Result, Success

from checkout.errors import (
    CheckoutError,
    InsufficientStock,
    ProductNotStocked,
    ValidationFailed,
)
from checkout.order.order import Order

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


class _ReservationAborted(Exception):
    """Unwinds the unit of work when a line cannot be reserved."""

    def __init__(self, failure: CheckoutError) -> None:
        super().__init__(failure.message)
        self.failure = failure


def merge_lines(lines) -> list[CartLine]:
    """Collapse repeated products into one line, keeping first-seen order."""
    merged: dict[str, int] = {}
    for line in lines:
        product_id = str(line.product_id)
        merged[product_id] = merged.get(product_id, 0) + line.quantity
    return [CartLine(product_id=product_id, quantity=quantity) for product_id, quantity in merged.items()]


class OrderBuilder:
    def __init__(self, domain, ledger, catalog, addresses, settings) -> None:
        self._domain = domain
        self._ledger = ledger
        self._catalog = catalog
        self._addresses = addresses
        self._settings = settings

    def _validate(self, user_id, lines, address_id) -> Result[list[CartLine], ValidationFailed]:
        if not user_id:
            return Failure(ValidationFailed(field="user_id", reason="An authenticated user is required"))
        if not lines:
            return Failure(ValidationFailed(field="lines", reason="The cart is empty"))

        for line in lines:
            if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity < 1:
                return Failure(
                    ValidationFailed(
                        field="quantity",
                        reason=f"Quantity for product {line.product_id} must be a positive integer",
                    )
                )

        merged = merge_lines(lines)
        for line in merged:
            if not self._catalog.is_purchasable(line.product_id) or self._catalog.get_price(line.product_id) is None:
                return Failure(
                    ValidationFailed(
                        field="product_id",
                        reason=f"Product {line.product_id} is not available for purchase",
                    )
                )

        if not address_id or not self._addresses.belongs_to(address_id, user_id):
            return Failure(ValidationFailed(field="address_id", reason="Unknown address"))

        return Success(merged)

    def _precheck_stock(self, lines: list[CartLine]) -> Result[None, ValidationFailed | InsufficientStock]:
        """Refuse the whole cart before any write if some line cannot be covered."""
        for line in lines:
            read = self._ledger.snapshot(line.product_id)
            if not is_successful(read):
                failure = read.failure()
                if isinstance(failure, ProductNotStocked):
                    return Failure(
                        ValidationFailed(
                            field="product_id",
                            reason=f"Product {line.product_id} is not stocked",
                        )
                    )
                return Failure(failure)

            snapshot = read.unwrap()
            if snapshot.inventory is not None and snapshot.inventory < line.quantity:
                return Failure(
                    InsufficientStock(
                        product_id=line.product_id,
                        requested=line.quantity,
                        available=snapshot.inventory,
                    )
                )
        return Success(None)

    def _reserve_and_persist(self, user_id, lines, address_id) -> Order:
        """One attempt: precheck, reserve every line and add the order, in one unit of work.

        Raises _ReservationAborted when a line cannot be covered, and lets
        ExpectedVersionError through when another buyer committed first.
        """
        with UnitOfWork():
            checked = self._precheck_stock(lines)
            if not is_successful(checked):
                raise _ReservationAborted(checked.failure())

            priced = []
            for line in lines:
                reserved = self._ledger.reserve_with_retry(
                    line.product_id,
                    line.quantity,
                    self._settings.max_reservation_attempts,
                )
                if not is_successful(reserved):
                    raise _ReservationAborted(reserved.failure())
                priced.append(
                    {
                        "product_id": line.product_id,
                        "quantity": line.quantity,
                        "price": self._catalog.get_price(line.product_id),
                    }
                )

            order = Order.place(
                user_id=user_id,
                address_id=address_id,
                lines=priced,
                currency=self._settings.currency,
            )
            self._domain.repository_for(Order).add(order)
        return order

    def _exhausted(self, lines) -> InsufficientStock:
        """The failure reported once every attempt lost its race: the shortest line, by last count."""
        shortest = None
        for line in lines:
            read = self._ledger.snapshot(line.product_id)
            available = read.unwrap().inventory if is_successful(read) else 0
            if available is None:
                continue
            if shortest is None or available - line.quantity < shortest.available - shortest.requested:
                shortest = InsufficientStock(product_id=line.product_id, requested=line.quantity, available=available)
        return shortest or InsufficientStock(product_id=lines[0].product_id, requested=lines[0].quantity, available=0)

    def place(self, user_id, lines, address_id) -> Result[Order, ValidationFailed | InsufficientStock]:
        """Validate the cart, reserve every line and persist a PENDING order.

        A commit that loses an optimistic-lock race is retried from a fresh
        read, up to ``settings.max_reservation_attempts`` times.
        """
        validated = self._validate(user_id, lines, address_id)
        if not is_successful(validated):
            logger.info("Order rejected", user_id=user_id, reason=validated.failure().message)
            return validated
        merged = validated.unwrap()

        attempts = max(1, self._settings.max_reservation_attempts)
        for attempt in range(1, attempts + 1):
            try:
                order = self._reserve_and_persist(user_id, merged, address_id)
            except _ReservationAborted as aborted:
                logger.info(
                    "Order placement aborted, no stock reserved",
                    user_id=str(user_id),
                    reason=aborted.failure.message,
                )
                return Failure(aborted.failure)
            except ExpectedVersionError:
                logger.info(
                    "Stock changed before commit, retrying order placement",
                    user_id=str(user_id),
                    attempt=attempt,
                    max_attempts=attempts,
                )
                continue

            logger.info(
                "Order placed",
                order_id=str(order.id),
                user_id=str(user_id),
                total=order.total,
                line_count=len(order.items),
            )
            return Success(order)

        failure = self._exhausted(merged)
        logger.warning(
            "Order placement retries exhausted",
            user_id=str(user_id),
            product_id=failure.product_id,
            attempts=attempts,
        )
        return Failure(failure)
