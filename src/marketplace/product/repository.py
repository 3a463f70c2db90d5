"""Repository for the Product aggregate."""

from marketplace.domain import marketplace
from marketplace.product.product import Product


@marketplace.repository(part_of=Product)
class ProductRepository:
    def low_stock_for_vendor(self, vendor_id, limit=10) -> list[Product]:
        """The vendor's tracked products at or below their low-stock threshold, emptiest first."""
        products = self._dao.query.filter(vendor_id=str(vendor_id)).all().items
        low = [product for product in products if product.is_low_on_stock]
        return sorted(low, key=lambda product: product.stock)[:limit]
