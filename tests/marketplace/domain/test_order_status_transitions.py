"""Tests for the Order state machine: cancellation, payment, vendor items and admin override."""

import json

import pytest
from marketplace.errors import Forbidden, InvalidTransition
from marketplace.order.events import (
    OrderCancelled,
    OrderItemStatusUpdated,
    OrderStatusOverridden,
    PaymentStatusUpdated,
)
from marketplace.order.order import Order
from marketplace.order.pricing import PricingPolicy, compute_pricing, line_subtotal
from protean.exceptions import ObjectNotFoundError, ValidationError

SHIPPING = {
    "full_name": "Alan Turing",
    "street": "2 Bletchley Park",
    "city": "Milton Keynes",
    "state": "Bucks",
    "zip_code": "MK3 6EB",
    "country": "UK",
}


def _order(*lines):
    lines = list(lines) or [("prod-1", "vendor-1", 15.0, 2)]
    payload = [
        {
            "product_id": product_id,
            "vendor_id": vendor_id,
            "title": f"Item {product_id}",
            "price": price,
            "quantity": quantity,
            "subtotal": line_subtotal(price, quantity),
        }
        for product_id, vendor_id, price, quantity in lines
    ]
    order = Order.place(
        order_number="ORD000007",
        customer_id="cust-001",
        lines=payload,
        shipping_address=SHIPPING,
        payment_method="paypal",
        pricing=compute_pricing(payload, policy=PricingPolicy()),
    )
    order._events.clear()
    return order


class TestCustomerCancellation:
    def test_pending_order_can_be_cancelled(self):
        order = _order(("p-1", "v-1", 10.0, 2), ("p-2", "v-2", 5.0, 1))
        released = order.cancel_by_customer("cust-001")

        assert order.status == "cancelled"
        assert sorted(released) == [("p-1", 2), ("p-2", 1)]
        assert all(item.status == "cancelled" for item in order.items)
        assert all(item.stock_released for item in order.items)
        assert order.latest_entry.message == "Order cancelled by customer"
        assert order.latest_entry.updated_by == "cust-001"

    def test_confirmed_order_can_be_cancelled(self):
        order = _order()
        order.update_payment("completed")
        order.cancel_by_customer("cust-001")
        assert order.status == "cancelled"

    @pytest.mark.parametrize("status", ["processing", "shipped", "delivered", "cancelled", "returned"])
    def test_later_states_cannot_be_cancelled(self, status):
        order = _order()
        order.override_status(status, "admin-1")
        with pytest.raises(InvalidTransition):
            order.cancel_by_customer("cust-001")

    def test_items_already_released_are_not_released_again(self):
        order = _order(("p-1", "v-1", 10.0, 2), ("p-2", "v-2", 5.0, 3))
        first = next(item for item in order.items if item.product_id == "p-1")
        order.update_item_status(first.id, "v-1", "cancelled")
        order.override_status("pending", "admin-1")

        released = order.cancel_by_customer("cust-001")
        assert released == [("p-2", 3)]

    def test_raises_order_cancelled(self):
        order = _order(("p-1", "v-1", 10.0, 2))
        order.cancel_by_customer("cust-001")

        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert json.loads(event.released_items) == [{"product_id": "p-1", "quantity": 2}]


class TestPaymentUpdates:
    def test_completed_confirms_pending_order(self):
        order = _order()
        order.update_payment("completed", transaction_id="txn-42", updated_by="cust-001")

        assert order.status == "confirmed"
        assert order.payment.status == "completed"
        assert order.payment.transaction_id == "txn-42"
        assert order.payment.paid_at is not None
        assert order.latest_entry.message == "Payment completed"

    def test_failed_cancels_pending_order(self):
        order = _order()
        order.update_payment("failed")

        assert order.status == "cancelled"
        assert order.latest_entry.message == "Payment failed"

    def test_failed_payment_leaves_item_stock_unreleased(self):
        order = _order()
        order.update_payment("failed")
        assert not any(item.stock_released for item in order.items)

    def test_processing_records_without_timeline_entry(self):
        order = _order()
        order.update_payment("processing", payment_intent_id="pi_1")

        assert order.status == "pending"
        assert len(order.timeline) == 1
        assert order.payment.payment_intent_id == "pi_1"

    def test_payment_during_fulfilment_leaves_status(self):
        order = _order()
        order.override_status("shipped", "admin-1")
        order.update_payment("completed")

        assert order.status == "shipped"
        assert order.payment.status == "completed"

    def test_refund_defaults_to_full_amount(self):
        order = _order()
        order.update_payment("completed")
        order.update_payment("refunded")

        assert order.payment.refund_amount == pytest.approx(order.payment.amount)
        assert order.payment.refunded_at is not None

    def test_partial_refund_amount(self):
        order = _order()
        order.update_payment("completed")
        order.update_payment("refunded", refund_amount=5.0)
        assert order.payment.refund_amount == pytest.approx(5.0)

    def test_closed_order_only_accepts_refunds(self):
        order = _order()
        order.cancel_by_customer("cust-001")

        with pytest.raises(InvalidTransition):
            order.update_payment("completed")
        order.update_payment("refunded")
        assert order.payment.status == "refunded"

    def test_unknown_payment_status(self):
        with pytest.raises(ValidationError):
            _order().update_payment("settled")

    def test_raises_payment_status_updated(self):
        order = _order()
        order.update_payment("completed", transaction_id="txn-1")

        event = order._events[-1]
        assert isinstance(event, PaymentStatusUpdated)
        assert event.previous_status == "pending"
        assert event.new_status == "completed"
        assert event.order_status == "confirmed"


class TestVendorItemUpdates:
    def test_item_status_moves_whole_order(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-2", 5.0, 1))
        item = order.items_for_vendor("v-1")[0]
        order.update_item_status(item.id, "v-1", "shipped", tracking_number="1Z999")

        assert item.status == "shipped"
        assert item.tracking_number == "1Z999"
        assert order.items_for_vendor("v-2")[0].status == "pending"
        assert order.status == "shipped"
        assert order.latest_entry.message == 'Item "Item p-1" status updated by vendor'

    def test_shipping_timestamp_set_once(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-1", 5.0, 1))
        first, second = order.items_for_vendor("v-1")
        order.update_item_status(first.id, "v-1", "shipped")
        shipped_at = order.shipping.shipped_at
        order.update_item_status(second.id, "v-1", "shipped")

        assert order.shipping.shipped_at == shipped_at

    def test_other_vendors_item_is_forbidden(self):
        order = _order(("p-1", "v-1", 10.0, 1))
        with pytest.raises(Forbidden):
            order.update_item_status(order.items[0].id, "v-2", "shipped")

    def test_missing_item(self):
        order = _order()
        with pytest.raises(ObjectNotFoundError):
            order.update_item_status("no-such-item", "vendor-1", "shipped")

    def test_cancelled_order_rejects_item_updates(self):
        order = _order()
        order.cancel_by_customer("cust-001")
        with pytest.raises(InvalidTransition):
            order.update_item_status(order.items[0].id, "vendor-1", "shipped")

    def test_cancelled_order_still_releases_held_items(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-2", 5.0, 2))
        order.update_item_status(order.items_for_vendor("v-1")[0].id, "v-1", "cancelled")
        assert order.status == "cancelled"

        released = order.update_item_status(order.items_for_vendor("v-2")[0].id, "v-2", "cancelled")

        assert released == [("p-2", 2)]
        assert order.status == "cancelled"

    def test_cancelled_order_rejects_released_items(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-2", 5.0, 2))
        first = order.items_for_vendor("v-1")[0]
        order.update_item_status(first.id, "v-1", "cancelled")

        with pytest.raises(InvalidTransition):
            order.update_item_status(first.id, "v-1", "returned")

    def test_item_status_index_follows_each_vendor(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-2", 5.0, 1))
        assert order.vendor_item_index == ",v-1:pending,v-2:pending,"

        order.update_item_status(order.items_for_vendor("v-1")[0].id, "v-1", "shipped")

        assert order.vendor_item_index == ",v-1:shipped,v-2:pending,"

    def test_customer_cancellation_reindexes_items(self):
        order = _order(("p-1", "v-1", 10.0, 1), ("p-2", "v-2", 5.0, 1))
        order.cancel_by_customer("cust-001")
        assert order.vendor_item_index == ",v-1:cancelled,v-2:cancelled,"

    def test_returned_item_releases_stock_once(self):
        order = _order(("p-1", "vendor-1", 10.0, 4))
        item = order.items[0]

        assert order.update_item_status(item.id, "vendor-1", "returned") == [("p-1", 4)]
        assert item.stock_released
        assert order.update_item_status(item.id, "vendor-1", "returned") == []

    def test_released_item_cannot_resume_fulfilment(self):
        order = _order(("p-1", "vendor-1", 10.0, 1), ("p-2", "vendor-1", 10.0, 1))
        item = order.items_for_vendor("vendor-1")[0]
        order.update_item_status(item.id, "vendor-1", "returned")

        with pytest.raises(InvalidTransition):
            order.update_item_status(item.id, "vendor-1", "shipped")

    def test_raises_item_status_updated(self):
        order = _order(("p-1", "vendor-1", 10.0, 3))
        order.update_item_status(order.items[0].id, "vendor-1", "cancelled")

        event = order._events[-1]
        assert isinstance(event, OrderItemStatusUpdated)
        assert event.new_status == "cancelled"
        assert event.stock_released == 3


class TestAdminOverride:
    def test_any_status_may_be_set(self):
        order = _order()
        order.override_status("delivered", "admin-1")
        order.override_status("pending", "admin-1")
        assert order.status == "pending"

    def test_message_includes_reason(self):
        order = _order()
        order.override_status("processing", "admin-1", reason="Manual review passed")
        assert order.latest_entry.message == "Status updated by admin: Manual review passed"
        assert order.latest_entry.updated_by == "admin-1"

    def test_message_without_reason(self):
        order = _order()
        order.override_status("processing", "admin-1")
        assert order.latest_entry.message == "Status updated by admin"

    def test_override_does_not_touch_items(self):
        order = _order()
        order.override_status("cancelled", "admin-1")
        assert order.items[0].status == "pending"
        assert not order.items[0].stock_released

    def test_delivered_sets_delivery_timestamp(self):
        order = _order()
        order.override_status("delivered", "admin-1")
        assert order.shipping.delivered_at is not None

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            _order().override_status("lost", "admin-1")

    def test_raises_status_overridden(self):
        order = _order()
        order.override_status("processing", "admin-1", reason="ok")

        event = order._events[-1]
        assert isinstance(event, OrderStatusOverridden)
        assert event.previous_status == "pending"
        assert event.new_status == "processing"
        assert event.reason == "ok"
