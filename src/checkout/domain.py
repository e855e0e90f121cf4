"""Checkout bounded context: order and payment lifecycle.

Owns the product stock ledger, orders, and the record of processed gateway
callbacks. Keeping all three in one domain lets a single unit of work span an
order and the inventory it reserves.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
