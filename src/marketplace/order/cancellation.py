"""Customer cancellation: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Forbidden
from marketplace.order.order import Order
from marketplace.product.catalog import CatalogStore

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if str(order.customer_id) != str(command.customer_id):
            raise Forbidden("Not authorized to cancel this order")

        released = order.cancel_by_customer(command.customer_id)

        catalog = CatalogStore()
        for product_id, quantity in released:
            catalog.adjust_inventory(product_id, quantity)

        repo.add(order)

        logger.info(
            "Order cancelled by customer",
            order_id=str(order.id),
            order_number=order.order_number,
            released_items=len(released),
        )
        return str(order.id)
