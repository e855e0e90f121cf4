"""Order lookups shared by the services and the HTTP layer."""

from protean.exceptions import ObjectNotFoundError
from returns.result import Failure, Result, Success

from checkout.errors import OrderNotFound
from checkout.order.order import Order


def find_order(domain, order_id, user_id=None) -> Result[Order, OrderNotFound]:
    """Load an order, optionally only if it belongs to ``user_id``.

    Somebody else's order is reported exactly like a missing one.
    """
    try:
        order = domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        return Failure(OrderNotFound(order_id=str(order_id)))
    if user_id is not None and str(order.user_id) != str(user_id):
        return Failure(OrderNotFound(order_id=str(order_id)))
    return Success(order)


def find_by_payment_intent(domain, intent_id) -> Order | None:
    repo = domain.repository_for(Order)
    matches = repo._dao.query.filter(payment_intent_id=str(intent_id)).all().items
    if not matches:
        return None
    return repo.get(str(matches[0].id))


def orders_for_user(domain, user_id) -> list[Order]:
    """The user's orders, newest first."""
    repo = domain.repository_for(Order)
    found = repo._dao.query.filter(user_id=str(user_id)).all().items
    orders = [repo.get(str(order.id)) for order in found]
    return sorted(orders, key=lambda order: order.created_at, reverse=True)


def pending_order_ids(domain) -> list[str]:
    found = domain.repository_for(Order)._dao.query.filter(status="PENDING").all().items
    return [str(order.id) for order in found]
