"""Product registration: command and handler.

Catalog management proper lives outside the order core; this is the seam
through which products enter the store so orders can be placed against them.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.product.product import Product, ProductStatus


@marketplace.command(part_of="Product")
class RegisterProduct:
    vendor_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(default=0, min_value=0)
    sku = String(max_length=50)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    track_quantity = Boolean(default=True)
    low_stock_threshold = Integer(default=10, min_value=0)


@marketplace.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.create(
            vendor_id=command.vendor_id,
            title=command.title,
            price=command.price,
            quantity=command.quantity,
            sku=command.sku,
            status=command.status,
            track_quantity=command.track_quantity,
            low_stock_threshold=command.low_stock_threshold,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
