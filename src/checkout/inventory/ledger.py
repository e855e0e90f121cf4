"""Inventory Ledger: the only writer of ProductStock.

Every reserve, release and administrative edit of a product's stock count
goes through this class, so the optimistic version check is applied in
exactly one place. The ledger never opens a unit of work of its own; callers
decide the transaction boundary and the ledger reads and writes inside it.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from returns.pipeline import is_successful
from returns.result import Failure, Result, Success

from checkout.errors import (
    InsufficientStock,
    ProductNotStocked,
    ValidationFailed,
    VersionConflict,
)
from checkout.inventory.stock import ProductStock

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockSnapshot:
    """What a caller read: the count and the version it was read at."""

    product_id: str
    inventory: int | None
    version: int

    @classmethod
    def of(cls, stock: ProductStock) -> "StockSnapshot":
        return cls(product_id=str(stock.id), inventory=stock.inventory, version=stock.version)


class InventoryLedger:
    def __init__(self, domain) -> None:
        self._domain = domain

    @property
    def _repo(self):
        return self._domain.repository_for(ProductStock)

    def _load(self, product_id) -> Result[ProductStock, ProductNotStocked]:
        try:
            return Success(self._repo.get(str(product_id)))
        except ObjectNotFoundError:
            return Failure(ProductNotStocked(product_id=str(product_id)))

    def register(self, product_id, inventory=None) -> Result[StockSnapshot, ValidationFailed]:
        """Put a product under inventory control (version 1)."""
        if is_successful(self._load(product_id)):
            return Failure(ValidationFailed(field="product_id", reason=f"Product {product_id} is already stocked"))
        if inventory is not None and inventory < 0:
            return Failure(ValidationFailed(field="inventory", reason="Inventory cannot be negative"))

        stock = ProductStock.register(product_id, inventory=inventory)
        self._repo.add(stock)
        logger.info("Stock registered", product_id=str(product_id), inventory=inventory)
        return Success(StockSnapshot.of(stock))

    def snapshot(self, product_id) -> Result[StockSnapshot, ProductNotStocked]:
        return self._load(product_id).map(StockSnapshot.of)

    def reserve(
        self, product_id, quantity, expected_version
    ) -> Result[StockSnapshot, ProductNotStocked | ValidationFailed | InsufficientStock | VersionConflict]:
        """Decrement stock if it is still at ``expected_version``."""
        loaded = self._load(product_id)
        if not is_successful(loaded):
            return loaded
        stock = loaded.unwrap()

        result = stock.reserve(quantity, expected_version)
        if not is_successful(result):
            logger.info(
                "Reservation refused",
                product_id=str(product_id),
                quantity=quantity,
                expected_version=expected_version,
                reason=type(result.failure()).__name__,
            )
            return result

        if not stock.is_unlimited:
            self._repo.add(stock)
        return Success(StockSnapshot.of(stock))

    def reserve_with_retry(
        self, product_id, quantity, attempts
    ) -> Result[StockSnapshot, ProductNotStocked | ValidationFailed | InsufficientStock]:
        """Reserve, re-reading and re-attempting after each VersionConflict.

        Once ``attempts`` conflicts in a row have been seen, the caller gets
        InsufficientStock carrying the last count that was read.
        """
        attempts = max(1, attempts)
        last_seen = None
        for attempt in range(1, attempts + 1):
            read = self.snapshot(product_id)
            if not is_successful(read):
                return read
            last_seen = read.unwrap()

            result = self.reserve(product_id, quantity, last_seen.version)
            if is_successful(result) or not isinstance(result.failure(), VersionConflict):
                return result

            logger.info(
                "Version conflict, retrying reservation",
                product_id=str(product_id),
                attempt=attempt,
                max_attempts=attempts,
            )

        logger.warning(
            "Reservation retries exhausted",
            product_id=str(product_id),
            quantity=quantity,
            attempts=attempts,
        )
        return Failure(
            InsufficientStock(
                product_id=str(product_id),
                requested=quantity,
                available=last_seen.inventory if last_seen and last_seen.inventory is not None else 0,
            )
        )

    def release(self, product_id, quantity) -> Result[StockSnapshot, ProductNotStocked | ValidationFailed]:
        """Give back units taken by an earlier reservation.

        A release is a compensation, not a competing writer, so it applies to
        whatever version is current and always bumps it.
        """
        loaded = self._load(product_id)
        if not is_successful(loaded):
            logger.warning("Release for unknown stock record", product_id=str(product_id), quantity=quantity)
            return loaded
        stock = loaded.unwrap()

        result = stock.release(quantity)
        if not is_successful(result):
            return result

        if not stock.is_unlimited:
            self._repo.add(stock)
        return Success(StockSnapshot.of(stock))

    def set_level(
        self, product_id, inventory, expected_version
    ) -> Result[StockSnapshot, ProductNotStocked | ValidationFailed | VersionConflict]:
        """Administrative overwrite of the stock count, under the same version check."""
        loaded = self._load(product_id)
        if not is_successful(loaded):
            return loaded
        stock = loaded.unwrap()

        result = stock.set_level(inventory, expected_version)
        if not is_successful(result):
            return result

        self._repo.add(stock)
        logger.info(
            "Stock level set",
            product_id=str(product_id),
            inventory=inventory,
            version=stock.version,
        )
        return Success(StockSnapshot.of(stock))
