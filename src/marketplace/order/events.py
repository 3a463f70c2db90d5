"""Domain events for the Order aggregate.

One event per timeline-changing operation. Events carry identifiers and the
resulting status so downstream consumers never need to reload the order.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order and its inventory was reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    vendor_ids = Text(required=True)  # JSON: list of vendor ids
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    total = Float(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    """The customer cancelled the order and its stock was released."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    released_items = Text(required=True)  # JSON: list of {product_id, quantity}
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentStatusUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    transaction_id = String()
    order_status = String(required=True)
    updated_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderItemStatusUpdated:
    """A vendor moved one of its line items to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    tracking_number = String()
    stock_released = Integer(default=0)
    updated_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusOverridden:
    """An administrator set the order status directly."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    admin_id = Identifier(required=True)
    reason = String()
    overridden_at = DateTime(required=True)
