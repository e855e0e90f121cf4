import pytest
from protean.integrations.pytest import DomainFixture

from checkout.collaborators import InMemoryAddresses, InMemoryCatalog, RecordingMailer
from checkout.config import Settings
from checkout.container import CheckoutServices
from checkout.gateway.fake_adapter import FakeGateway

ALICE = "user-alice"
BOB = "user-bob"
ALICE_ADDRESS = "addr-alice-home"
BOB_ADDRESS = "addr-bob-home"

# product id → (unit price in cents, starting inventory; None = unlimited)
PRODUCTS = {
    "prod-mug": (1250, 10),
    "prod-tee": (2000, 5),
    "prod-poster": (800, 1),
    "prod-ebook": (900, None),
}


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout
    from checkout.utils.db import drop_db, setup_db

    bed = DomainFixture(checkout)
    bed.setup()
    setup_db(checkout)
    yield bed
    drop_db(checkout)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def settings():
    return Settings(environment="test", webhook_secret="whsec_test", max_reservation_attempts=3)


@pytest.fixture()
def gateway(settings):
    return FakeGateway(webhook_secret=settings.webhook_secret)


@pytest.fixture()
def catalog():
    catalog = InMemoryCatalog()
    for product_id, (price, _) in PRODUCTS.items():
        catalog.add_product(product_id, price)
    catalog.add_product("prod-retired", 500, purchasable=False)
    return catalog


@pytest.fixture()
def addresses():
    addresses = InMemoryAddresses()
    addresses.add_address(ALICE_ADDRESS, ALICE)
    addresses.add_address(BOB_ADDRESS, BOB)
    return addresses


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def services(checkout_bed, settings, gateway, catalog, addresses, mailer):
    from checkout.domain import checkout

    return CheckoutServices(
        domain=checkout,
        gateway=gateway,
        catalog=catalog,
        addresses=addresses,
        mailer=mailer,
        settings=settings,
    )


@pytest.fixture()
def ledger(services):
    return services.ledger


@pytest.fixture()
def stocked(ledger):
    """Register every catalog product with its starting inventory."""
    for product_id, (_, inventory) in PRODUCTS.items():
        ledger.register(product_id, inventory=inventory)
    return ledger
