"""Payment status updates: command and handler."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Forbidden
from marketplace.order.order import Order, PaymentStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class UpdatePaymentStatus:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True, choices=PaymentStatus)
    transaction_id = String(max_length=100)
    payment_intent_id = String(max_length=100)
    refund_amount = Float(min_value=0.0)


@marketplace.command_handler(part_of=Order)
class UpdatePaymentStatusHandler:
    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if str(order.customer_id) != str(command.customer_id):
            raise Forbidden("Not authorized to update payment for this order")

        previous_status = order.status
        order.update_payment(
            status=command.status,
            transaction_id=command.transaction_id,
            payment_intent_id=command.payment_intent_id,
            refund_amount=command.refund_amount,
            updated_by=command.customer_id,
        )
        repo.add(order)

        if command.status == PaymentStatus.FAILED.value and order.status != previous_status:
            # Reserved stock stays with a payment-failed order
            logger.warning(
                "Order cancelled after payment failure without releasing inventory",
                order_id=str(order.id),
                order_number=order.order_number,
                payment_status=command.status,
                order_status=order.status,
            )
        else:
            logger.info(
                "Payment status updated",
                order_id=str(order.id),
                order_number=order.order_number,
                payment_status=command.status,
                order_status=order.status,
            )
        return str(order.id)
