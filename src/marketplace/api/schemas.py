"""Pydantic request/response schemas for the Marketplace API.

These are external contracts, kept separate from the Protean commands the
routes translate them into.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from marketplace.order.order import OrderStatus, PaymentMethod, PaymentStatus
from marketplace.order.repository import OrderPage


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=30)


class OrderItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: PaymentMethod
    notes: str | None = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "full_name": "Ada Lovelace",
                        "street": "12 Analytical Way",
                        "city": "London",
                        "state": "Greater London",
                        "zip_code": "N1 9GU",
                        "country": "UK",
                    },
                    "payment_method": "credit_card",
                }
            ]
        }
    }


class UpdatePaymentRequest(BaseModel):
    status: PaymentStatus
    transaction_id: str | None = Field(default=None, max_length=100)
    payment_intent_id: str | None = Field(default=None, max_length=100)
    refund_amount: float | None = Field(default=None, ge=0)


class UpdateItemStatusRequest(BaseModel):
    status: OrderStatus
    tracking_number: str | None = Field(default=None, max_length=100)


class AdminStatusRequest(BaseModel):
    status: OrderStatus
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class LineItemResponse(BaseModel):
    id: str
    product_id: str
    vendor_id: str
    title: str
    price: float
    quantity: int
    subtotal: float
    status: str
    tracking_number: str | None = None


class TimelineEntryResponse(BaseModel):
    status: str
    message: str
    timestamp: datetime
    updated_by: str | None = None


class PaymentResponse(BaseModel):
    method: str
    status: str
    transaction_id: str | None = None
    payment_intent_id: str | None = None
    amount: float | None = None
    currency: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    refund_amount: float | None = None


class PricingResponse(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    currency: str | None = None


class ShippingResponse(BaseModel):
    method: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    status: str
    items: list[LineItemResponse]
    shipping_address: AddressSchema
    billing_address: AddressSchema
    billing_same_as_shipping: bool
    payment: PaymentResponse
    pricing: PricingResponse
    timeline: list[TimelineEntryResponse]
    shipping: ShippingResponse | None = None
    customer_notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next_page: bool
    has_prev_page: bool


class OrderListResponse(BaseModel):
    count: int
    pagination: PaginationResponse
    orders: list[OrderResponse]


class TrackedItemResponse(BaseModel):
    title: str
    vendor: str | None = None
    status: str
    tracking_number: str | None = None


class TrackingResponse(BaseModel):
    order_number: str
    status: str
    timeline: list[TimelineEntryResponse]
    shipping: ShippingResponse
    items: list[TrackedItemResponse]


class VendorStatsResponse(BaseModel):
    total_orders: int
    total_revenue: float


class LowStockProductResponse(BaseModel):
    id: str
    title: str
    quantity: int
    low_stock_threshold: int


class VendorDashboardResponse(BaseModel):
    vendor_id: str
    store_name: str
    stats: VendorStatsResponse
    recent_orders: list[OrderResponse]
    low_stock_products: list[LowStockProductResponse]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def _address(vo) -> AddressSchema:
    return AddressSchema(
        full_name=vo.full_name,
        street=vo.street,
        city=vo.city,
        state=vo.state,
        zip_code=vo.zip_code,
        country=vo.country,
        phone=vo.phone,
    )


def order_response(order, vendor_id=None) -> OrderResponse:
    """Serialize an order, limited to one vendor's items when ``vendor_id`` is given."""
    items = order.items_for_vendor(vendor_id) if vendor_id else order.line_items
    payment = order.payment
    pricing = order.pricing
    shipping = order.shipping

    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        items=[
            LineItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                vendor_id=str(item.vendor_id),
                title=item.title,
                price=item.price,
                quantity=item.quantity,
                subtotal=item.subtotal,
                status=item.status,
                tracking_number=item.tracking_number,
            )
            for item in items
        ],
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        billing_same_as_shipping=bool(order.billing_same_as_shipping),
        payment=PaymentResponse(
            method=payment.method,
            status=payment.status,
            transaction_id=payment.transaction_id,
            payment_intent_id=payment.payment_intent_id,
            amount=payment.amount,
            currency=payment.currency,
            paid_at=payment.paid_at,
            refunded_at=payment.refunded_at,
            refund_amount=payment.refund_amount,
        ),
        pricing=PricingResponse(
            subtotal=pricing.subtotal,
            tax=pricing.tax,
            shipping=pricing.shipping,
            discount=pricing.discount,
            total=pricing.total,
            currency=pricing.currency,
        ),
        timeline=[
            TimelineEntryResponse(
                status=entry.status,
                message=entry.message,
                timestamp=entry.timestamp,
                updated_by=entry.updated_by,
            )
            for entry in order.entries
        ],
        shipping=(
            ShippingResponse(
                method=shipping.method,
                carrier=shipping.carrier,
                tracking_number=shipping.tracking_number,
                estimated_delivery=shipping.estimated_delivery,
                shipped_at=shipping.shipped_at,
                delivered_at=shipping.delivered_at,
            )
            if shipping
            else None
        ),
        customer_notes=order.notes.customer if order.notes else None,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def order_list_response(page: OrderPage, vendor_id=None) -> OrderListResponse:
    return OrderListResponse(
        count=len(page.orders),
        pagination=PaginationResponse(
            current_page=page.page,
            total_pages=page.total_pages,
            total_orders=page.total,
            has_next_page=page.has_next,
            has_prev_page=page.has_prev,
        ),
        orders=[order_response(order, vendor_id=vendor_id) for order in page.orders],
    )


def tracking_response(tracking: dict) -> TrackingResponse:
    return TrackingResponse(
        order_number=tracking["order_number"],
        status=tracking["status"],
        timeline=[TimelineEntryResponse(**entry) for entry in tracking["timeline"]],
        shipping=ShippingResponse(**tracking["shipping"]),
        items=[TrackedItemResponse(**item) for item in tracking["items"]],
    )


def vendor_dashboard_response(dashboard: dict) -> VendorDashboardResponse:
    vendor = dashboard["vendor"]
    vendor_id = str(vendor.id)
    return VendorDashboardResponse(
        vendor_id=vendor_id,
        store_name=vendor.store_name,
        stats=VendorStatsResponse(**dashboard["stats"]),
        recent_orders=[order_response(order, vendor_id=vendor_id) for order in dashboard["recent_orders"]],
        low_stock_products=[
            LowStockProductResponse(
                id=str(product.id),
                title=product.title,
                quantity=product.stock,
                low_stock_threshold=product.inventory.low_stock_threshold,
            )
            for product in dashboard["low_stock_products"]
        ],
    )
