"""Catalog store - the order lifecycle's view of products and their inventory.

All calls go through the Product repository and so join whatever unit of
work is active: a reservation made while placing an order is committed or
rolled back together with the order itself.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import ProductNotFound
from marketplace.product.product import Product

logger = structlog.get_logger(__name__)


class CatalogStore:
    def get(self, product_id) -> Product:
        try:
            return current_domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            raise ProductNotFound(product_id) from None

    def is_active(self, product_id) -> bool:
        return self.get(product_id).is_active

    def adjust_inventory(self, product_id, delta: int) -> Product:
        """Apply a stock delta: negative reserves, positive restores.

        A tracked product never goes below zero; the reservation is refused
        with ``InsufficientStock`` instead. Untracked products are returned
        unchanged.
        """
        repo = current_domain.repository_for(Product)
        product = self.get(product_id)
        if delta == 0 or not product.tracks_quantity:
            return product

        if delta < 0:
            product.reserve(-delta)
        else:
            product.restock(delta)
        repo.add(product)

        logger.debug(
            "Inventory adjusted",
            product_id=str(product.id),
            delta=delta,
            quantity=product.stock,
        )
        return product
