"""Stock alerts - surfaces low-stock conditions raised during reservations."""

import structlog
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.product.events import LowStockDetected
from marketplace.product.product import Product

logger = structlog.get_logger(__name__)


@marketplace.event_handler(part_of=Product)
class StockAlertHandler:
    @handle(LowStockDetected)
    def on_low_stock(self, event: LowStockDetected) -> None:
        logger.warning(
            "Product stock is low",
            product_id=str(event.product_id),
            vendor_id=str(event.vendor_id),
            title=event.title,
            current_quantity=event.current_quantity,
            threshold=event.threshold,
        )
