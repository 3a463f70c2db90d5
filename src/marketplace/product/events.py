"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Product")
class ProductRegistered:
    """A vendor listed a new product in the catalog."""

    __version__ = 1

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    title = String(required=True)
    initial_quantity = Integer(required=True)
    registered_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class StockReserved:
    """Tracked inventory was decremented for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reserved_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class StockRestored:
    """Tracked inventory was returned after a cancellation or return."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    restored_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class LowStockDetected:
    """Tracked inventory dropped to or below the product's low-stock threshold."""

    __version__ = 1

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    title = String(required=True)
    current_quantity = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)
