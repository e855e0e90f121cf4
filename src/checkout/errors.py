"""Failure values returned by checkout operations.

Core operations return ``returns.result.Result``; the failure side is one of
the frozen dataclasses below. None of them is raised. The HTTP layer maps
them to status codes in ``checkout.api.errors``.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutError:
    """Base class for every failure value."""

    @property
    def message(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationFailed(CheckoutError):
    field: str
    reason: str

    @property
    def message(self) -> str:
        return f"{self.field}: {self.reason}"


@dataclass(frozen=True)
class ProductNotStocked(CheckoutError):
    product_id: str

    @property
    def message(self) -> str:
        return f"No stock record for product {self.product_id}"


@dataclass(frozen=True)
class InsufficientStock(CheckoutError):
    product_id: str
    requested: int
    available: int

    @property
    def message(self) -> str:
        return f"Insufficient stock for product {self.product_id}: {self.available} available, {self.requested} requested"


@dataclass(frozen=True)
class VersionConflict(CheckoutError):
    """The stock record moved since it was read. Re-read and retry."""

    product_id: str
    expected_version: int
    actual_version: int

    @property
    def message(self) -> str:
        return (
            f"Stock for product {self.product_id} changed concurrently: "
            f"expected version {self.expected_version}, found {self.actual_version}"
        )


@dataclass(frozen=True)
class InvalidTransition(CheckoutError):
    order_id: str
    current: str
    target: str

    @property
    def message(self) -> str:
        return f"Order {self.order_id} cannot transition from {self.current} to {self.target}"


@dataclass(frozen=True)
class OrderNotFound(CheckoutError):
    order_id: str

    @property
    def message(self) -> str:
        return f"Order {self.order_id} not found"


@dataclass(frozen=True)
class GatewayUnavailable(CheckoutError):
    reason: str

    @property
    def message(self) -> str:
        return f"Payment gateway unavailable: {self.reason}"


@dataclass(frozen=True)
class InvalidGatewayRequest(CheckoutError):
    reason: str

    @property
    def message(self) -> str:
        return f"Payment gateway rejected the request: {self.reason}"


@dataclass(frozen=True)
class SignatureInvalid(CheckoutError):
    correlation_id: str

    @property
    def message(self) -> str:
        return f"Callback signature verification failed ({self.correlation_id})"


@dataclass(frozen=True)
class Rejected(CheckoutError):
    """A gateway callback refused before reaching business logic."""

    correlation_id: str
    reason: str

    @property
    def message(self) -> str:
        return f"Callback rejected: {self.reason} ({self.correlation_id})"


@dataclass(frozen=True)
class ConcurrentUpdate(CheckoutError):
    """Another writer kept committing first; the caller may try again."""

    resource: str
    identifier: str

    @property
    def message(self) -> str:
        return f"{self.resource} {self.identifier} is being updated concurrently, try again"
