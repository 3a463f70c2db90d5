"""Vendor line-item status updates: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order, OrderStatus
from marketplace.product.catalog import CatalogStore

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class UpdateOrderItemStatus:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    tracking_number = String(max_length=100)
    updated_by = Identifier()


@marketplace.command_handler(part_of=Order)
class UpdateOrderItemStatusHandler:
    @handle(UpdateOrderItemStatus)
    def update_order_item_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        released = order.update_item_status(
            item_id=command.item_id,
            vendor_id=command.vendor_id,
            status=command.status,
            tracking_number=command.tracking_number,
            updated_by=command.updated_by or command.vendor_id,
        )

        catalog = CatalogStore()
        for product_id, quantity in released:
            catalog.adjust_inventory(product_id, quantity)

        repo.add(order)

        logger.info(
            "Order item status updated",
            order_id=str(order.id),
            order_number=order.order_number,
            item_id=str(command.item_id),
            vendor_id=str(command.vendor_id),
            status=command.status,
        )
        return str(order.id)
