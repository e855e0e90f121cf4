"""Domain events for the ProductStock aggregate."""

from protean.fields import DateTime, Identifier, Integer

from checkout.domain import checkout


@checkout.event(part_of="ProductStock")
class StockRegistered:
    """A product was put under inventory control."""

    __version__ = 1

    product_id = Identifier(required=True)
    inventory = Integer()  # None means unlimited
    registered_at = DateTime(required=True)


@checkout.event(part_of="ProductStock")
class StockReserved:
    """Units were provisionally taken out of stock for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_inventory = Integer(required=True)
    new_inventory = Integer(required=True)
    stock_version = Integer(required=True)
    reserved_at = DateTime(required=True)


@checkout.event(part_of="ProductStock")
class StockReleased:
    """A reservation was compensated and the units returned to stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_inventory = Integer(required=True)
    new_inventory = Integer(required=True)
    stock_version = Integer(required=True)
    released_at = DateTime(required=True)


@checkout.event(part_of="ProductStock")
class StockLevelSet:
    """An administrator overwrote the stock count."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_inventory = Integer()
    new_inventory = Integer()
    stock_version = Integer(required=True)
    set_at = DateTime(required=True)
