"""ProductStock aggregate: per-product stock count under optimistic locking.

Stock Model:
    inventory: units that can still be sold; None means the product is not
               stock-tracked (unlimited)
    version:   starts at 1 and moves by exactly 1 on every inventory mutation

Every mutation takes the version the caller read. A write against a version
that has moved on is refused with VersionConflict, which tells the caller to
re-read and try again rather than to give up.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Integer
from returns.result import Failure, Result, Success

from checkout.domain import checkout
from checkout.errors import InsufficientStock, ValidationFailed, VersionConflict
from checkout.inventory.events import (
    StockLevelSet,
    StockRegistered,
    StockReleased,
    StockReserved,
)


@checkout.aggregate
class ProductStock:
    """Stock for one catalog product. The aggregate id is the product id."""

    inventory = Integer(min_value=0)
    version = Integer(default=1, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, product_id, inventory=None):
        now = datetime.now(UTC)
        stock = cls(
            id=str(product_id),
            inventory=inventory,
            version=1,
            created_at=now,
            updated_at=now,
        )
        stock.raise_(
            StockRegistered(
                product_id=str(product_id),
                inventory=inventory,
                registered_at=now,
            )
        )
        return stock

    @property
    def is_unlimited(self) -> bool:
        return self.inventory is None

    def _version_conflict(self, expected_version) -> VersionConflict | None:
        if self.version == expected_version:
            return None
        return VersionConflict(
            product_id=str(self.id),
            expected_version=expected_version,
            actual_version=self.version,
        )

    def reserve(
        self, quantity, expected_version
    ) -> Result["ProductStock", ValidationFailed | InsufficientStock | VersionConflict]:
        """Take ``quantity`` units out of stock.

        Unlimited stock always succeeds and is left untouched.
        """
        if quantity < 1:
            return Failure(ValidationFailed(field="quantity", reason="Quantity must be positive"))
        if self.is_unlimited:
            return Success(self)

        conflict = self._version_conflict(expected_version)
        if conflict is not None:
            return Failure(conflict)

        if self.inventory < quantity:
            return Failure(
                InsufficientStock(
                    product_id=str(self.id),
                    requested=quantity,
                    available=self.inventory,
                )
            )

        now = datetime.now(UTC)
        previous = self.inventory
        self.inventory = previous - quantity
        self.version = self.version + 1
        self.updated_at = now
        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=quantity,
                previous_inventory=previous,
                new_inventory=self.inventory,
                stock_version=self.version,
                reserved_at=now,
            )
        )
        return Success(self)

    def release(self, quantity) -> Result["ProductStock", ValidationFailed]:
        """Return ``quantity`` previously reserved units to stock."""
        if quantity < 1:
            return Failure(ValidationFailed(field="quantity", reason="Quantity must be positive"))
        if self.is_unlimited:
            return Success(self)

        now = datetime.now(UTC)
        previous = self.inventory
        self.inventory = previous + quantity
        self.version = self.version + 1
        self.updated_at = now
        self.raise_(
            StockReleased(
                product_id=str(self.id),
                quantity=quantity,
                previous_inventory=previous,
                new_inventory=self.inventory,
                stock_version=self.version,
                released_at=now,
            )
        )
        return Success(self)

    def set_level(self, inventory, expected_version) -> Result["ProductStock", ValidationFailed | VersionConflict]:
        """Overwrite the stock count (administrative edit)."""
        if inventory is not None and inventory < 0:
            return Failure(ValidationFailed(field="inventory", reason="Inventory cannot be negative"))

        conflict = self._version_conflict(expected_version)
        if conflict is not None:
            return Failure(conflict)

        now = datetime.now(UTC)
        previous = self.inventory
        self.inventory = inventory
        self.version = self.version + 1
        self.updated_at = now
        self.raise_(
            StockLevelSet(
                product_id=str(self.id),
                previous_inventory=previous,
                new_inventory=inventory,
                stock_version=self.version,
                set_at=now,
            )
        )
        return Success(self)
