"""Service container for the Checkout bounded context.

Everything the core talks to (the domain, the gateway and the external
collaborators) is handed to ``CheckoutServices`` once, at start-up. Services
are built from it on demand, so a test can assemble its own container with
fakes and nothing reaches for a module-level client.
"""

from dataclasses import dataclass, field

from checkout.collaborators import (
    Addresses,
    Catalog,
    InMemoryAddresses,
    InMemoryCatalog,
    Mailer,
    RecordingMailer,
)
from checkout.config import Settings
from checkout.gateway import build_gateway
from checkout.gateway.port import PaymentGateway
from checkout.inventory.ledger import InventoryLedger
from checkout.order.builder import OrderBuilder
from checkout.payment.intents import PaymentIntents
from checkout.payment.reconciler import WebhookReconciler


@dataclass
class CheckoutServices:
    domain: object
    gateway: PaymentGateway
    catalog: Catalog
    addresses: Addresses
    mailer: Mailer
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def build(cls, domain, settings: Settings, **overrides) -> "CheckoutServices":
        """Assemble a container, defaulting to in-memory collaborators."""
        return cls(
            domain=domain,
            gateway=overrides.get("gateway") or build_gateway(settings),
            catalog=overrides.get("catalog") or InMemoryCatalog(),
            addresses=overrides.get("addresses") or InMemoryAddresses(),
            mailer=overrides.get("mailer") or RecordingMailer(),
            settings=settings,
        )

    @property
    def ledger(self) -> InventoryLedger:
        return InventoryLedger(self.domain)

    def order_builder(self) -> OrderBuilder:
        return OrderBuilder(self.domain, self.ledger, self.catalog, self.addresses, self.settings)

    def payment_intents(self) -> PaymentIntents:
        return PaymentIntents(self.domain, self.gateway, self.ledger, self.settings)

    def webhook_reconciler(self) -> WebhookReconciler:
        return WebhookReconciler(self.domain, self.gateway, self.ledger, self.mailer)
