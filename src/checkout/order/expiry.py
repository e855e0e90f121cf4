"""Pending order expiry: command, handler and the batch job for abandoned payments.

An order whose payment never completes keeps its stock reserved. The job
cancels every PENDING order older than the threshold and gives the stock
back. It is meant to be triggered periodically by an external scheduler
(cron, K8s CronJob) via the maintenance API endpoint or ``manage.py``.

Each order is expired by its own command, so each runs in its own unit of
work: an order that changes under the job (a payment landing, say) is
skipped without holding back the rest of the batch.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain
from returns.pipeline import is_successful

from checkout.domain import checkout
from checkout.inventory.ledger import InventoryLedger
from checkout.order.cancellation import cancel_and_release
from checkout.order.order import CancellationActor, Order, as_utc
from checkout.order.queries import pending_order_ids

logger = structlog.get_logger(__name__)

PAYMENT_TIMEOUT_REASON = "payment_timeout"
DEFAULT_TIMEOUT_MINUTES = 30


@checkout.command(part_of="Order")
class ExpirePendingOrder:
    """Cancel one PENDING order if it was created at or before ``cutoff``."""

    order_id = Identifier(required=True)
    cutoff = DateTime(required=True)


@checkout.command_handler(part_of=Order)
class ExpirePendingOrderHandler:
    @handle(ExpirePendingOrder)
    def expire_pending_order(self, command) -> bool:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if not order.is_pending or as_utc(order.created_at) > as_utc(command.cutoff):
            return False

        result = cancel_and_release(
            InventoryLedger(current_domain),
            order,
            reason=PAYMENT_TIMEOUT_REASON,
            cancelled_by=CancellationActor.SYSTEM.value,
        )
        if not is_successful(result):
            logger.warning(
                "Failed to expire pending order",
                order_id=str(order.id),
                error=result.failure().message,
            )
            return False

        repo.add(order)
        return True


def expire_pending_orders(domain, older_than_minutes=None, as_of=None) -> int:
    """Expire every PENDING order older than the threshold; returns how many were cancelled."""
    threshold_minutes = DEFAULT_TIMEOUT_MINUTES if older_than_minutes is None else older_than_minutes
    as_of = as_utc(as_of) or datetime.now(UTC)
    cutoff = as_of - timedelta(minutes=threshold_minutes)

    logger.info(
        "Checking for expired pending orders",
        cutoff=cutoff.isoformat(),
        threshold_minutes=threshold_minutes,
    )

    repo = domain.repository_for(Order)
    candidates = []
    for order_id in pending_order_ids(domain):
        created_at = as_utc(repo.get(order_id).created_at)
        if created_at and created_at <= cutoff:
            candidates.append(order_id)
    if not candidates:
        logger.info("No expired pending orders found")
        return 0

    expired_count = 0
    for order_id in candidates:
        try:
            expired = domain.process(ExpirePendingOrder(order_id=order_id, cutoff=cutoff), asynchronous=False)
        except ExpectedVersionError:
            logger.warning("Pending order changed during expiry, skipped", order_id=order_id)
            continue
        if expired:
            expired_count += 1

    logger.info(
        "Pending order expiry complete",
        expired_count=expired_count,
        candidates=len(candidates),
    )
    return expired_count
