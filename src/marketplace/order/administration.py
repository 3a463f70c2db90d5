"""Administrative status override: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class OverrideOrderStatus:
    order_id = Identifier(required=True)
    admin_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    reason = String(max_length=500)


@marketplace.command_handler(part_of=Order)
class OverrideOrderStatusHandler:
    @handle(OverrideOrderStatus)
    def override_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_status = order.status

        order.override_status(command.status, command.admin_id, reason=command.reason)
        repo.add(order)

        logger.info(
            "Order status overridden by admin",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous_status,
            status=command.status,
            admin_id=str(command.admin_id),
        )
        return str(order.id)
