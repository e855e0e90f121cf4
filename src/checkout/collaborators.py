"""External collaborators consumed by the checkout core.

Authentication, the product catalog, the address book and outbound email
all live outside this service. The core only sees the narrow protocols
below. The in-memory implementations back development and the tests; a
deployment swaps in real clients through ``CheckoutServices``.
"""

from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class AuthContext(Protocol):
    def current_user_id(self) -> str | None: ...


class Catalog(Protocol):
    def get_price(self, product_id: str) -> int | None:
        """Unit price in minor units, or None for an unknown product."""
        ...

    def is_purchasable(self, product_id: str) -> bool: ...


class Addresses(Protocol):
    def belongs_to(self, address_id: str, user_id: str) -> bool: ...


class Mailer(Protocol):
    def send_order_confirmation(self, order) -> None: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------
class StaticAuthContext:
    """Resolves to a fixed user id (None means anonymous)."""

    def __init__(self, user_id: str | None = None) -> None:
        self.user_id = user_id

    def current_user_id(self) -> str | None:
        return self.user_id


class InMemoryCatalog:
    def __init__(self) -> None:
        self._prices: dict[str, int] = {}
        self._unavailable: set[str] = set()

    def add_product(self, product_id: str, price: int, purchasable: bool = True) -> None:
        self._prices[str(product_id)] = price
        if purchasable:
            self._unavailable.discard(str(product_id))
        else:
            self._unavailable.add(str(product_id))

    def set_price(self, product_id: str, price: int) -> None:
        self._prices[str(product_id)] = price

    def get_price(self, product_id: str) -> int | None:
        return self._prices.get(str(product_id))

    def is_purchasable(self, product_id: str) -> bool:
        return str(product_id) in self._prices and str(product_id) not in self._unavailable


class InMemoryAddresses:
    def __init__(self) -> None:
        self._owners: dict[str, str] = {}

    def add_address(self, address_id: str, user_id: str) -> None:
        self._owners[str(address_id)] = str(user_id)

    def belongs_to(self, address_id: str, user_id: str) -> bool:
        return self._owners.get(str(address_id)) == str(user_id)


class RecordingMailer:
    """Records confirmations instead of sending them.

    ``fail_with`` makes every send raise the given exception, which lets tests
    check that a mail outage never leaks into payment reconciliation.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.fail_with: Exception | None = None

    def send_order_confirmation(self, order) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(str(order.id))
        logger.info("Order confirmation queued", order_id=str(order.id), user_id=str(order.user_id))
