"""Runtime settings for the Checkout service, read from the environment."""

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    gateway: str = "fake"
    gateway_secret_key: str = ""
    webhook_secret: str = "whsec_development"
    database_url: str | None = None
    currency: str = "USD"
    max_reservation_attempts: int = 3
    pending_order_timeout_minutes: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.environ.get("PROTEAN_ENV", "development"),
            gateway=os.environ.get("CHECKOUT_GATEWAY", "fake"),
            gateway_secret_key=os.environ.get("CHECKOUT_GATEWAY_SECRET_KEY", ""),
            webhook_secret=os.environ.get("CHECKOUT_WEBHOOK_SECRET", "whsec_development"),
            database_url=os.environ.get("DATABASE_URL") or None,
            currency=os.environ.get("CHECKOUT_CURRENCY", "USD"),
            max_reservation_attempts=max(1, _int_env("CHECKOUT_MAX_RESERVATION_ATTEMPTS", 3)),
            pending_order_timeout_minutes=_int_env("CHECKOUT_PENDING_ORDER_TIMEOUT_MINUTES", 30),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
