"""Application tests for order commands: cancel, ship, deliver and expiry."""

import threading
from datetime import UTC, datetime, timedelta

from checkout.domain import checkout
from checkout.errors import InvalidTransition, OrderNotFound
from checkout.order import expiry
from checkout.order.builder import CartLine
from checkout.order.cancellation import CancelOrder
from checkout.order.expiry import PAYMENT_TIMEOUT_REASON, ExpirePendingOrder, expire_pending_orders
from checkout.order.fulfillment import DeliverOrder, ShipOrder
from checkout.order.order import Order, OrderStatus
from protean import current_domain
from returns.pipeline import is_successful

ALICE = "user-alice"
ALICE_ADDRESS = "addr-alice-home"


def _place(services, lines=(("prod-mug", 3),)):
    return services.order_builder().place(ALICE, [CartLine(*line) for line in lines], ALICE_ADDRESS).unwrap()


def _mark_paid(order):
    repo = current_domain.repository_for(Order)
    stored = repo.get(str(order.id))
    stored.mark_paid()
    repo.add(stored)


def _status(order):
    return current_domain.repository_for(Order).get(str(order.id)).status


class TestCancelOrder:
    def test_cancel_pending_order_releases_stock(self, services, stocked):
        order = _place(services)

        result = current_domain.process(
            CancelOrder(order_id=str(order.id), user_id=ALICE, reason="Changed my mind"),
            asynchronous=False,
        )

        assert is_successful(result)
        assert _status(order) == OrderStatus.CANCELLED.value
        assert stocked.snapshot("prod-mug").unwrap().inventory == 10

    def test_cannot_cancel_paid_order(self, services, stocked):
        order = _place(services)
        _mark_paid(order)

        result = current_domain.process(
            CancelOrder(order_id=str(order.id), reason="Too late"),
            asynchronous=False,
        )

        assert isinstance(result.failure(), InvalidTransition)
        assert stocked.snapshot("prod-mug").unwrap().inventory == 7

    def test_cannot_cancel_someone_elses_order(self, services, stocked):
        order = _place(services)
        result = current_domain.process(
            CancelOrder(order_id=str(order.id), user_id="user-bob", reason="Mischief"),
            asynchronous=False,
        )
        assert isinstance(result.failure(), OrderNotFound)
        assert _status(order) == OrderStatus.PENDING.value


class TestFulfillment:
    def test_ship_then_deliver(self, services, stocked):
        order = _place(services)
        _mark_paid(order)

        assert is_successful(current_domain.process(ShipOrder(order_id=str(order.id)), asynchronous=False))
        assert _status(order) == OrderStatus.SHIPPED.value
        assert is_successful(current_domain.process(DeliverOrder(order_id=str(order.id)), asynchronous=False))
        assert _status(order) == OrderStatus.DELIVERED.value

    def test_cannot_ship_unpaid_order(self, services, stocked):
        order = _place(services)
        result = current_domain.process(ShipOrder(order_id=str(order.id)), asynchronous=False)
        assert result.failure() == InvalidTransition(order_id=str(order.id), current="PENDING", target="SHIPPED")

    def test_cannot_deliver_before_shipping(self, services, stocked):
        order = _place(services)
        _mark_paid(order)
        result = current_domain.process(DeliverOrder(order_id=str(order.id)), asynchronous=False)
        assert isinstance(result.failure(), InvalidTransition)
        assert _status(order) == OrderStatus.PROCESSING.value

    def test_unknown_order(self, services, stocked):
        result = current_domain.process(ShipOrder(order_id="ord-missing"), asynchronous=False)
        assert isinstance(result.failure(), OrderNotFound)


def _later(**delta):
    return datetime.now(UTC) + timedelta(**delta)


class TestExpirePendingOrders:
    def test_expires_old_pending_orders(self, services, stocked):
        order = _place(services)

        expired = expire_pending_orders(current_domain, older_than_minutes=30, as_of=_later(hours=1))

        assert expired == 1
        stored = current_domain.repository_for(Order).get(str(order.id))
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.cancellation_reason == PAYMENT_TIMEOUT_REASON
        assert stocked.snapshot("prod-mug").unwrap().inventory == 10

    def test_recent_orders_are_kept(self, services, stocked):
        order = _place(services)
        expired = expire_pending_orders(current_domain, older_than_minutes=30)
        assert expired == 0
        assert _status(order) == OrderStatus.PENDING.value

    def test_paid_orders_are_never_expired(self, services, stocked):
        order = _place(services)
        _mark_paid(order)

        expired = expire_pending_orders(current_domain, older_than_minutes=0, as_of=_later(days=1))

        assert expired == 0
        assert _status(order) == OrderStatus.PROCESSING.value
        assert stocked.snapshot("prod-mug").unwrap().inventory == 7

    def test_single_order_command_respects_cutoff(self, services, stocked):
        order = _place(services)

        expired = current_domain.process(
            ExpirePendingOrder(order_id=str(order.id), cutoff=_later(hours=-1)),
            asynchronous=False,
        )

        assert expired is False
        assert _status(order) == OrderStatus.PENDING.value

    def test_order_changing_underneath_is_skipped(self, services, stocked, monkeypatch):
        busy = _place(services, lines=(("prod-mug", 3),))
        idle = _place(services, lines=(("prod-tee", 1),))
        real_cancel = expiry.cancel_and_release

        def touch(order_id):
            with checkout.domain_context():
                repo = checkout.repository_for(Order)
                order = repo.get(order_id)
                order.updated_at = datetime.now(UTC)
                repo.add(order)

        def cancel_while_busy(ledger, order, **kwargs):
            if str(order.id) == str(busy.id):
                # Someone else commits a newer version before this unit of work does
                writer = threading.Thread(target=touch, args=(str(order.id),))
                writer.start()
                writer.join()
            return real_cancel(ledger, order, **kwargs)

        monkeypatch.setattr(expiry, "cancel_and_release", cancel_while_busy)

        expired = expire_pending_orders(current_domain, older_than_minutes=0, as_of=_later(minutes=1))

        assert expired == 1
        assert _status(idle) == OrderStatus.CANCELLED.value
        assert _status(busy) == OrderStatus.PENDING.value
        assert stocked.snapshot("prod-tee").unwrap().inventory == 5
        assert stocked.snapshot("prod-mug").unwrap().inventory == 7
