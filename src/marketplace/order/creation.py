"""Order placement: command and handler.

The handler runs as one unit of work: every requested product is checked and
the order is priced, numbered and built before anything changes; only then is
stock reserved and the order stored. A failure at any step leaves neither the
reservation nor the order behind.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock, ProductUnavailable
from marketplace.order.numbering import allocate_order_number
from marketplace.order.order import Address, Order, PaymentMethod
from marketplace.order.pricing import compute_pricing, line_subtotal
from marketplace.product.catalog import CatalogStore

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    payment_method = String(required=True, choices=PaymentMethod)
    notes = String(max_length=500)


def _load(raw):
    return json.loads(raw) if isinstance(raw, str) else raw


def parse_requested_items(raw):
    """Return ``(product_id, quantity)`` pairs from the command payload."""
    try:
        entries = _load(raw)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError({"items": ["Items must be valid JSON"]}) from None

    if not isinstance(entries, list) or not entries:
        raise ValidationError({"items": ["Order must contain at least one item"]})

    requested = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("product_id"):
            raise ValidationError({"items": [f"Item {index + 1} must name a product"]})
        quantity = entry.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError({"items": [f"Item {index + 1} quantity must be a whole number of at least 1"]})
        requested.append((str(entry["product_id"]), quantity))
    return requested


def parse_address(raw, field):
    """Decode an address payload and check it carries every required field."""
    try:
        data = _load(raw)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError({field: ["Address must be valid JSON"]}) from None

    if not isinstance(data, dict):
        raise ValidationError({field: ["Address must be an object"]})

    try:
        Address(**data)
    except ValidationError as exc:
        raise ValidationError({f"{field}.{key}": messages for key, messages in exc.messages.items()}) from None
    return data


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        requested = parse_requested_items(command.items)
        shipping_address = parse_address(command.shipping_address, "shipping_address")
        billing_address = parse_address(command.billing_address, "billing_address") if command.billing_address else None

        catalog = CatalogStore()

        # Check everything before reserving anything
        products = {}
        demand = {}
        for product_id, quantity in requested:
            product = products.get(product_id)
            if product is None:
                product = catalog.get(product_id)
            if not product.is_active:
                raise ProductUnavailable(product_id, product.title)
            products[product_id] = product
            demand[product_id] = demand.get(product_id, 0) + quantity

        for product_id, quantity in demand.items():
            product = products[product_id]
            if not product.can_supply(quantity):
                raise InsufficientStock(product_id, product.title, product.stock, quantity)

        lines = []
        for product_id, quantity in requested:
            product = products[product_id]
            lines.append(
                {
                    "product_id": product_id,
                    "vendor_id": str(product.vendor_id),
                    "title": product.title,
                    "price": product.price,
                    "quantity": quantity,
                    "subtotal": line_subtotal(product.price, quantity),
                }
            )

        pricing = compute_pricing(lines)
        order_number = allocate_order_number()

        order = Order.place(
            order_number=order_number,
            customer_id=command.customer_id,
            lines=lines,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=command.payment_method,
            pricing=pricing,
            notes=command.notes,
        )

        for product_id, quantity in demand.items():
            catalog.adjust_inventory(product_id, -quantity)

        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order_number,
            customer_id=str(command.customer_id),
            total=pricing.total,
            item_count=len(lines),
        )
        return str(order.id)
