"""Order aggregate - a customer's purchase across one or more vendors.

The order owns its line items and an append-only timeline. Every status
change is recorded by appending a timeline entry; ``status`` is always the
status of the newest entry and is never assigned on its own.

Status flow:
    pending → confirmed → processing → shipped → delivered
    cancelled / returned as side exits

Line items carry their own status, set by the vendor that owns them. An
item update also appends an order-level timeline entry and so moves the
whole order to the item's status, even when other vendors' items are
elsewhere in their flow.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.errors import Forbidden, InvalidTransition
from marketplace.order.events import (
    OrderCancelled,
    OrderItemStatusUpdated,
    OrderPlaced,
    OrderStatusOverridden,
    PaymentStatusUpdated,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    """Shared by the order and its line items."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# States from which the customer may still cancel
_CUSTOMER_CANCELLABLE = {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value}

# Payment outcomes only move the order while it has not entered fulfilment
_PAYMENT_RESPONSIVE = {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value}

# Item statuses that hand the item's stock back to the catalog
_STOCK_RELEASING = {OrderStatus.CANCELLED.value, OrderStatus.RETURNED.value}

_CLOSED = {OrderStatus.CANCELLED.value, OrderStatus.RETURNED.value}

_MONEY_TOLERANCE = 0.005


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class Address:
    """Postal address captured at checkout, immutable once on the order."""

    full_name = String(required=True, max_length=100)
    street = String(required=True, max_length=200)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class Payment:
    method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=100)
    payment_intent_id = String(max_length=100)
    amount = Float(min_value=0.0)
    currency = String(max_length=3, default="USD")
    paid_at = DateTime()
    refunded_at = DateTime()
    refund_amount = Float(min_value=0.0)

    def replace(self, **changes):
        values = {
            "method": self.method,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "paid_at": self.paid_at,
            "refunded_at": self.refunded_at,
            "refund_amount": self.refund_amount,
        }
        values.update(changes)
        return Payment(**values)


@marketplace.value_object(part_of="Order")
class OrderPricing:
    """Monetary summary, computed at checkout and never supplied by the caller."""

    subtotal = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@marketplace.value_object(part_of="Order")
class ShippingDetails:
    method = String(max_length=50)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    estimated_delivery = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()

    def replace(self, **changes):
        values = {
            "method": self.method,
            "carrier": self.carrier,
            "tracking_number": self.tracking_number,
            "estimated_delivery": self.estimated_delivery,
            "shipped_at": self.shipped_at,
            "delivered_at": self.delivered_at,
        }
        values.update(changes)
        return ShippingDetails(**values)


@marketplace.value_object(part_of="Order")
class OrderNotes:
    customer = String(max_length=500)
    admin = String(max_length=500)
    internal = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class LineItem:
    """One product bought from one vendor.

    Title and price are snapshots taken when the order was placed.
    ``stock_released`` records that the item's quantity has gone back to the
    catalog, so it is never restored twice.
    """

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)
    position = Integer(default=0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    tracking_number = String(max_length=100)
    stock_released = Boolean(default=False)


@marketplace.entity(part_of="Order")
class TimelineEntry:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    message = String(required=True, max_length=500)
    timestamp = DateTime(required=True)
    updated_by = String(max_length=100)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(LineItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    billing_same_as_shipping = Boolean(default=False)
    payment = ValueObject(Payment)
    pricing = ValueObject(OrderPricing)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    timeline = HasMany(TimelineEntry)
    vendor_index = Text()  # ",<vendor_id>,<vendor_id>," for containment lookups
    vendor_item_index = Text()  # ",<vendor_id>:<item status>," per distinct pair
    notes = ValueObject(OrderNotes)
    shipping = ValueObject(ShippingDetails)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def status_must_follow_latest_timeline_entry(self):
        latest = self.latest_entry
        if latest is not None and latest.status != self.status:
            raise ValidationError(
                {"status": [f"Order status {self.status} does not match latest timeline entry {latest.status}"]}
            )

    @invariant.post
    def line_subtotals_must_match_price_and_quantity(self):
        for item in self.items:
            if abs(item.price * item.quantity - item.subtotal) > _MONEY_TOLERANCE:
                raise ValidationError({"items": [f"Subtotal of {item.title} does not match price x quantity"]})

    @invariant.post
    def pricing_must_balance(self):
        if not self.pricing:
            return

        pricing = self.pricing
        expected_total = pricing.subtotal + pricing.tax + pricing.shipping - pricing.discount
        if abs(expected_total - pricing.total) > _MONEY_TOLERANCE:
            raise ValidationError({"pricing": ["Total must equal subtotal + tax + shipping - discount"]})

        items_subtotal = sum(item.subtotal for item in self.items)
        if abs(items_subtotal - pricing.subtotal) > _MONEY_TOLERANCE:
            raise ValidationError({"pricing": ["Subtotal must equal the sum of line item subtotals"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        shipping_address,
        payment_method,
        pricing,
        billing_address=None,
        notes=None,
    ):
        """Build a new pending order.

        Args:
            order_number: The allocated human-readable number.
            customer_id: The customer placing the order.
            lines: List of dicts with product_id, vendor_id, title, price,
                   quantity and subtotal, in the order the customer listed them.
            shipping_address: Address dict.
            payment_method: One of ``PaymentMethod``.
            pricing: ``OrderPricing`` computed for ``lines``.
            billing_address: Address dict; defaults to the shipping address.
            notes: Optional customer note.
        """
        if not lines:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        now = datetime.now(UTC)
        shipping_vo = Address(**shipping_address)
        billing_vo = Address(**billing_address) if billing_address else Address(**shipping_address)

        items = [
            LineItem(
                product_id=line["product_id"],
                vendor_id=line["vendor_id"],
                title=line["title"],
                price=line["price"],
                quantity=line["quantity"],
                subtotal=line["subtotal"],
                position=position,
            )
            for position, line in enumerate(lines)
        ]
        vendor_ids = _distinct(str(line["vendor_id"]) for line in lines)

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            items=items,
            shipping_address=shipping_vo,
            billing_address=billing_vo,
            billing_same_as_shipping=not billing_address,
            payment=Payment(
                method=payment_method,
                status=PaymentStatus.PENDING.value,
                amount=pricing.total,
                currency=pricing.currency,
            ),
            pricing=pricing,
            status=OrderStatus.PENDING.value,
            timeline=[
                TimelineEntry(
                    sequence=1,
                    status=OrderStatus.PENDING.value,
                    message="Order created",
                    timestamp=now,
                    updated_by=str(customer_id),
                )
            ],
            vendor_index="," + ",".join(vendor_ids) + ",",
            vendor_item_index=_item_status_index((item.vendor_id, item.status) for item in items),
            notes=OrderNotes(customer=notes) if notes else None,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                vendor_ids=json.dumps(vendor_ids),
                item_count=len(items),
                subtotal=pricing.subtotal,
                total=pricing.total,
                payment_method=payment_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def line_items(self):
        """Items in the order the customer listed them."""
        return sorted(self.items, key=lambda item: item.position or 0)

    @property
    def entries(self):
        """Timeline entries, oldest first."""
        return sorted(self.timeline, key=lambda entry: entry.sequence)

    @property
    def latest_entry(self):
        if not self.timeline:
            return None
        return max(self.timeline, key=lambda entry: entry.sequence)

    @property
    def vendor_ids(self) -> list[str]:
        return _distinct(str(item.vendor_id) for item in self.line_items)

    def involves_vendor(self, vendor_id) -> bool:
        return str(vendor_id) in self.vendor_ids

    def items_for_vendor(self, vendor_id):
        return [item for item in self.line_items if str(item.vendor_id) == str(vendor_id)]

    def find_item(self, item_id):
        return next((item for item in self.items if str(item.id) == str(item_id)), None)

    def revenue_by_vendor(self) -> dict[str, float]:
        """Sum of line subtotals per vendor, in first-appearance order."""
        revenue = {}
        for item in self.line_items:
            key = str(item.vendor_id)
            revenue[key] = revenue.get(key, 0.0) + item.subtotal
        return {vendor_id: round(amount, 2) for vendor_id, amount in revenue.items()}

    def _reindex_item_statuses(self):
        self.vendor_item_index = _item_status_index((item.vendor_id, item.status) for item in self.line_items)

    # -------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------
    def _record_status(self, status, message, updated_by=None):
        """Append a timeline entry and move the order to its status."""
        now = datetime.now(UTC)
        latest = self.latest_entry
        sequence = latest.sequence + 1 if latest else 1

        with atomic_change(self):
            self.add_timeline(
                TimelineEntry(
                    sequence=sequence,
                    status=status,
                    message=message,
                    timestamp=now,
                    updated_by=str(updated_by) if updated_by is not None else None,
                )
            )
            self.status = status

            if status == OrderStatus.SHIPPED.value and not (self.shipping and self.shipping.shipped_at):
                self.shipping = (self.shipping or ShippingDetails()).replace(shipped_at=now)
            elif status == OrderStatus.DELIVERED.value and not (self.shipping and self.shipping.delivered_at):
                self.shipping = (self.shipping or ShippingDetails()).replace(delivered_at=now)

            self.updated_at = now
        return now

    # -------------------------------------------------------------------
    # Customer cancellation
    # -------------------------------------------------------------------
    def cancel_by_customer(self, customer_id):
        """Cancel the order on the customer's behalf.

        Returns ``(product_id, quantity)`` pairs whose stock must go back to
        the catalog. Items that already released their stock are skipped.
        """
        if self.status not in _CUSTOMER_CANCELLABLE:
            raise InvalidTransition(f"Order cannot be cancelled from status {self.status}")

        released = []
        with atomic_change(self):
            for item in self.line_items:
                if not item.stock_released:
                    released.append((str(item.product_id), item.quantity))
                    item.stock_released = True
                item.status = OrderStatus.CANCELLED.value
            self._reindex_item_statuses()

        now = self._record_status(
            OrderStatus.CANCELLED.value,
            "Order cancelled by customer",
            customer_id,
        )

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(customer_id),
                released_items=json.dumps(
                    [{"product_id": product_id, "quantity": quantity} for product_id, quantity in released]
                ),
                cancelled_at=now,
            )
        )
        return released

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def update_payment(
        self,
        status,
        transaction_id=None,
        payment_intent_id=None,
        refund_amount=None,
        updated_by=None,
    ):
        """Record a payment status reported for this order.

        ``completed`` confirms a pending order and ``failed`` cancels it. Once
        the order is in fulfilment the payment is recorded without touching
        the order status. A closed order only accepts refunds.
        """
        if status not in {s.value for s in PaymentStatus}:
            raise ValidationError({"status": [f"Invalid payment status: {status}"]})
        if self.status in _CLOSED and status != PaymentStatus.REFUNDED.value:
            raise InvalidTransition(f"Payment cannot be marked {status} on a {self.status} order")

        now = datetime.now(UTC)
        previous = self.payment.status
        changes = {"status": status}
        if transaction_id:
            changes["transaction_id"] = transaction_id
        if payment_intent_id:
            changes["payment_intent_id"] = payment_intent_id
        if status == PaymentStatus.COMPLETED.value:
            changes["paid_at"] = now
        elif status == PaymentStatus.REFUNDED.value:
            changes["refunded_at"] = now
            changes["refund_amount"] = refund_amount if refund_amount is not None else self.payment.amount

        self.payment = self.payment.replace(**changes)
        self.updated_at = now

        if self.status in _PAYMENT_RESPONSIVE:
            if status == PaymentStatus.COMPLETED.value:
                self._record_status(OrderStatus.CONFIRMED.value, "Payment completed", updated_by)
            elif status == PaymentStatus.FAILED.value:
                self._record_status(OrderStatus.CANCELLED.value, "Payment failed", updated_by)

        self.raise_(
            PaymentStatusUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=status,
                transaction_id=transaction_id,
                order_status=self.status,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Vendor item updates
    # -------------------------------------------------------------------
    def update_item_status(self, item_id, vendor_id, status, tracking_number=None, updated_by=None):
        """Move one of ``vendor_id``'s items to ``status``.

        The timeline entry this appends also becomes the order status.
        Returns the ``(product_id, quantity)`` pairs to restock, which is the
        item itself the first time it is cancelled or returned.
        """
        if status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Invalid status: {status}"]})

        item = self.find_item(item_id)
        if item is None:
            raise ObjectNotFoundError({"item_id": [f"Order item {item_id} not found"]})
        if str(item.vendor_id) != str(vendor_id):
            raise Forbidden("Order item not found or not authorized")
        # A cancelled order only accepts the release of stock it still holds
        if self.status == OrderStatus.CANCELLED.value and (item.stock_released or status not in _STOCK_RELEASING):
            raise InvalidTransition(
                f"Item {item.title} of a cancelled order can only be cancelled or returned while it holds stock"
            )
        if item.stock_released and status not in _STOCK_RELEASING:
            raise InvalidTransition(f"Item {item.title} was {item.status} and its stock already released")

        previous = item.status
        released = []
        with atomic_change(self):
            item.status = status
            if tracking_number:
                item.tracking_number = tracking_number
            if status in _STOCK_RELEASING and not item.stock_released:
                item.stock_released = True
                released.append((str(item.product_id), item.quantity))
            self._reindex_item_statuses()

        now = self._record_status(status, f'Item "{item.title}" status updated by vendor', updated_by)

        self.raise_(
            OrderItemStatusUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                item_id=str(item.id),
                vendor_id=str(vendor_id),
                previous_status=previous,
                new_status=status,
                tracking_number=tracking_number,
                stock_released=sum(quantity for _, quantity in released),
                updated_at=now,
            )
        )
        return released

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def override_status(self, status, admin_id, reason=None):
        """Set any status on an administrator's authority. Inventory is left untouched."""
        if status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Invalid status: {status}"]})

        previous = self.status
        message = f"Status updated by admin: {reason}" if reason else "Status updated by admin"
        now = self._record_status(status, message, admin_id)

        self.raise_(
            OrderStatusOverridden(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=status,
                admin_id=str(admin_id),
                reason=reason,
                overridden_at=now,
            )
        )


def _distinct(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def _item_status_index(pairs):
    """Containment-searchable ``,<vendor_id>:<status>,`` index of item statuses."""
    return "," + ",".join(_distinct(f"{vendor_id}:{status}" for vendor_id, status in pairs)) + ","
