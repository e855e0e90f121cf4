"""Application tests for PaymentIntents: the gateway call site and its compensation."""

import threading
from datetime import UTC, datetime

from checkout.domain import checkout
from checkout.errors import GatewayUnavailable, InvalidGatewayRequest, InvalidTransition, OrderNotFound
from checkout.inventory.ledger import InventoryLedger
from checkout.order.builder import CartLine
from checkout.order.order import Order, OrderStatus
from checkout.payment.intents import COMMIT_ATTEMPTS, PAYMENT_INITIATION_FAILED, PaymentIntents
from protean import current_domain
from returns.pipeline import is_successful

ALICE = "user-alice"
ALICE_ADDRESS = "addr-alice-home"


def _pending_order(services, lines=(("prod-mug", 2), ("prod-tee", 1))):
    return services.order_builder().place(ALICE, [CartLine(*line) for line in lines], ALICE_ADDRESS).unwrap()


def _reload(order):
    return current_domain.repository_for(Order).get(str(order.id))


class TestIntentCreated:
    def test_returns_client_secret(self, services, stocked):
        order = _pending_order(services)
        intent = services.payment_intents().create_for_order(str(order.id), user_id=ALICE).unwrap()
        assert intent.client_secret

    def test_gateway_charged_server_computed_total(self, services, stocked, gateway):
        order = _pending_order(services)
        services.payment_intents().create_for_order(str(order.id))
        assert gateway.calls[-1]["amount"] == 4500
        assert gateway.calls[-1]["order_id"] == str(order.id)
        assert gateway.calls[-1]["currency"] == "USD"

    def test_intent_is_attached_to_order(self, services, stocked):
        order = _pending_order(services)
        intent = services.payment_intents().create_for_order(str(order.id)).unwrap()

        stored = _reload(order)
        assert stored.payment_intent_id == intent.intent_id
        assert stored.payment_status == "requires_payment_method"
        assert stored.status == OrderStatus.PENDING.value

    def test_second_request_reuses_intent(self, services, stocked):
        order = _pending_order(services)
        first = services.payment_intents().create_for_order(str(order.id)).unwrap()
        second = services.payment_intents().create_for_order(str(order.id)).unwrap()
        assert first.intent_id == second.intent_id
        assert _reload(order).payment_intent_id == first.intent_id


class TestRefused:
    def test_unknown_order(self, services, stocked):
        result = services.payment_intents().create_for_order("ord-missing")
        assert result.failure() == OrderNotFound(order_id="ord-missing")

    def test_someone_elses_order(self, services, stocked, gateway):
        order = _pending_order(services)
        result = services.payment_intents().create_for_order(str(order.id), user_id="user-bob")
        assert isinstance(result.failure(), OrderNotFound)
        assert gateway.calls == []

    def test_order_not_pending(self, services, stocked, gateway):
        order = _pending_order(services)
        stored = _reload(order)
        stored.cancel(reason="changed mind", cancelled_by="Customer")
        current_domain.repository_for(Order).add(stored)

        result = services.payment_intents().create_for_order(str(order.id))

        assert isinstance(result.failure(), InvalidTransition)
        assert gateway.calls == []


class TestGatewayFailureCompensation:
    def test_unavailable_gateway_cancels_order(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False, failure_reason="timeout")

        result = services.payment_intents().create_for_order(str(order.id))

        assert isinstance(result.failure(), GatewayUnavailable)
        stored = _reload(order)
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.cancellation_reason == PAYMENT_INITIATION_FAILED

    def test_unavailable_gateway_releases_stock(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False)

        services.payment_intents().create_for_order(str(order.id))

        assert stocked.snapshot("prod-mug").unwrap().inventory == 10
        assert stocked.snapshot("prod-tee").unwrap().inventory == 5

    def test_rejected_request_also_compensates(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False, failure_reason="bad amount", failure_kind="invalid_request")

        result = services.payment_intents().create_for_order(str(order.id))

        assert isinstance(result.failure(), InvalidGatewayRequest)
        assert _reload(order).status == OrderStatus.CANCELLED.value
        assert stocked.snapshot("prod-mug").unwrap().inventory == 10

    def test_no_intent_recorded(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False)
        services.payment_intents().create_for_order(str(order.id))
        assert _reload(order).payment_intent_id is None

    def test_retry_after_compensation_is_refused(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False)
        services.payment_intents().create_for_order(str(order.id))
        gateway.configure(should_succeed=True)

        result = services.payment_intents().create_for_order(str(order.id))

        assert not is_successful(result)
        assert isinstance(result.failure(), InvalidTransition)


class OrderTouchingLedger(InventoryLedger):
    """On each of the first ``conflicts`` mug releases, another writer commits the order from a separate thread."""

    def __init__(self, domain, order_id, conflicts):
        super().__init__(domain)
        self.order_id = order_id
        self.conflicts = conflicts

    def release(self, product_id, quantity):
        if product_id == "prod-mug" and self.conflicts > 0:
            self.conflicts -= 1
            writer = threading.Thread(target=self._touch)
            writer.start()
            writer.join()
        return super().release(product_id, quantity)

    def _touch(self):
        with checkout.domain_context():
            repo = checkout.repository_for(Order)
            order = repo.get(self.order_id)
            order.updated_at = datetime.now(UTC)
            repo.add(order)


class TestCompensationUnderContention:
    def _intents(self, services, order, conflicts):
        ledger = OrderTouchingLedger(checkout, str(order.id), conflicts)
        return PaymentIntents(services.domain, services.gateway, ledger, services.settings)

    def test_conflicting_cancellation_is_retried(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False)

        result = self._intents(services, order, conflicts=1).create_for_order(str(order.id))

        assert isinstance(result.failure(), GatewayUnavailable)
        assert _reload(order).status == OrderStatus.CANCELLED.value
        assert stocked.snapshot("prod-mug").unwrap().inventory == 10
        assert stocked.snapshot("prod-tee").unwrap().inventory == 5

    def test_persistent_conflict_leaves_order_for_expiry(self, services, stocked, gateway):
        order = _pending_order(services)
        gateway.configure(should_succeed=False)

        result = self._intents(services, order, conflicts=COMMIT_ATTEMPTS).create_for_order(str(order.id))

        # The gateway failure is still what the caller sees
        assert isinstance(result.failure(), GatewayUnavailable)
        assert _reload(order).status == OrderStatus.PENDING.value
        assert stocked.snapshot("prod-mug").unwrap().inventory == 8
