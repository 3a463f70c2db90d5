"""Product aggregate - the catalog record an order line item is priced from.

Only the parts of a product the order lifecycle depends on live here: the
price and title snapshotted onto line items, the purchasable status, and the
inventory counters reserved at checkout and restored on cancellation.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, ValueObject

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock
from marketplace.product.events import (
    LowStockDetected,
    ProductRegistered,
    StockReserved,
    StockRestored,
)


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out-of-stock"
    DISCONTINUED = "discontinued"


@marketplace.value_object(part_of="Product")
class Inventory:
    """Stock counters for a product.

    When ``track_quantity`` is off the product is always purchasable and the
    quantity is informational only.
    """

    quantity = Integer(default=0, min_value=0)
    track_quantity = Boolean(default=True)
    low_stock_threshold = Integer(default=10, min_value=0)


@marketplace.aggregate
class Product:
    vendor_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    sku = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    inventory = ValueObject(Inventory)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tracked_quantity_must_not_be_negative(self):
        if self.inventory and self.inventory.track_quantity and self.inventory.quantity < 0:
            raise ValidationError({"inventory": ["Tracked quantity cannot be negative"]})

    @classmethod
    def create(
        cls,
        vendor_id,
        title,
        price,
        quantity=0,
        sku=None,
        status=ProductStatus.ACTIVE.value,
        track_quantity=True,
        low_stock_threshold=10,
    ):
        now = datetime.now(UTC)
        product = cls(
            vendor_id=vendor_id,
            title=title,
            price=price,
            sku=sku,
            status=status,
            inventory=Inventory(
                quantity=quantity,
                track_quantity=track_quantity,
                low_stock_threshold=low_stock_threshold,
            ),
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                vendor_id=str(vendor_id),
                title=title,
                initial_quantity=quantity,
                registered_at=now,
            )
        )
        return product

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    @property
    def tracks_quantity(self) -> bool:
        return bool(self.inventory and self.inventory.track_quantity)

    @property
    def stock(self) -> int:
        return self.inventory.quantity if self.inventory else 0

    @property
    def is_low_on_stock(self) -> bool:
        return self.tracks_quantity and self.stock <= self.inventory.low_stock_threshold

    def can_supply(self, quantity) -> bool:
        return not self.tracks_quantity or self.stock >= quantity

    def _with_quantity(self, quantity):
        return Inventory(
            quantity=quantity,
            track_quantity=self.inventory.track_quantity,
            low_stock_threshold=self.inventory.low_stock_threshold,
        )

    def reserve(self, quantity):
        """Take ``quantity`` units out of tracked stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.tracks_quantity:
            return

        previous = self.stock
        if previous < quantity:
            raise InsufficientStock(self.id, self.title, previous, quantity)

        now = datetime.now(UTC)
        self.inventory = self._with_quantity(previous - quantity)
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=quantity,
                previous_quantity=previous,
                new_quantity=self.stock,
                reserved_at=now,
            )
        )

        if self.is_low_on_stock:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    vendor_id=str(self.vendor_id),
                    title=self.title,
                    current_quantity=self.stock,
                    threshold=self.inventory.low_stock_threshold,
                    detected_at=now,
                )
            )

    def restock(self, quantity):
        """Put ``quantity`` units back into tracked stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.tracks_quantity:
            return

        previous = self.stock
        now = datetime.now(UTC)
        self.inventory = self._with_quantity(previous + quantity)
        self.updated_at = now

        self.raise_(
            StockRestored(
                product_id=str(self.id),
                quantity=quantity,
                previous_quantity=previous,
                new_quantity=self.stock,
                restored_at=now,
            )
        )
