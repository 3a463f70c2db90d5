"""FastAPI routes for the Marketplace.

Caller identity is established upstream and arrives in the ``X-User-Id`` and
``X-User-Role`` headers. Routes translate requests into lifecycle calls and
serialize the resulting orders.
"""

from fastapi import APIRouter, Header

from marketplace.api.schemas import (
    AdminStatusRequest,
    CreateOrderRequest,
    OrderListResponse,
    OrderResponse,
    TrackingResponse,
    UpdateItemStatusRequest,
    UpdatePaymentRequest,
    VendorDashboardResponse,
    order_list_response,
    order_response,
    tracking_response,
    vendor_dashboard_response,
)
from marketplace.errors import Forbidden
from marketplace.order.access import Caller, Role
from marketplace.order.lifecycle import OrderLifecycle

lifecycle = OrderLifecycle()


def _caller(user_id: str, role: str, required: Role | None = None) -> Caller:
    if not user_id:
        raise Forbidden("Caller identity is required")
    caller = Caller(id=user_id, role=(role or Role.CUSTOMER.value).lower())
    if required is not None and caller.role != required.value:
        raise Forbidden(f"This action requires the {required.value} role")
    return caller


# ---------------------------------------------------------------------------
# Customer Orders
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(
    body: CreateOrderRequest,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    """Place an order for the calling customer."""
    caller = _caller(x_user_id, x_user_role, Role.CUSTOMER)
    order = lifecycle.create_order(
        customer_id=caller.id,
        items=[item.model_dump() for item in body.items],
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method.value,
        notes=body.notes,
    )
    return order_response(order)


@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderListResponse:
    """List the calling customer's orders, newest first."""
    caller = _caller(x_user_id, x_user_role)
    return order_list_response(lifecycle.list_orders(caller.id, status=status, page=page, limit=limit))


@order_router.get("/{order_number}/track", response_model=TrackingResponse)
async def track_order(order_number: str) -> TrackingResponse:
    """Public progress of an order by its number."""
    return tracking_response(lifecycle.track_order(order_number))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    caller = _caller(x_user_id, x_user_role)
    return order_response(lifecycle.get_order(order_id, caller))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    """Cancel a pending or confirmed order and release its stock."""
    caller = _caller(x_user_id, x_user_role, Role.CUSTOMER)
    return order_response(lifecycle.cancel_order(order_id, caller.id))


@order_router.put("/{order_id}/payment", response_model=OrderResponse)
async def update_payment(
    order_id: str,
    body: UpdatePaymentRequest,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    caller = _caller(x_user_id, x_user_role, Role.CUSTOMER)
    order = lifecycle.update_payment(
        order_id,
        caller.id,
        status=body.status.value,
        transaction_id=body.transaction_id,
        payment_intent_id=body.payment_intent_id,
        refund_amount=body.refund_amount,
    )
    return order_response(order)


# ---------------------------------------------------------------------------
# Vendor Orders
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendors", tags=["vendors"])


@vendor_router.get("/dashboard/stats", response_model=VendorDashboardResponse)
async def vendor_dashboard(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> VendorDashboardResponse:
    """Sales counters, recent orders and low-stock products of the calling vendor."""
    caller = _caller(x_user_id, x_user_role, Role.VENDOR)
    return vendor_dashboard_response(lifecycle.vendor_dashboard(caller.id))


@vendor_router.get("/orders", response_model=OrderListResponse)
async def list_vendor_orders(
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderListResponse:
    """Orders containing the calling vendor's items, showing only those items."""
    caller = _caller(x_user_id, x_user_role, Role.VENDOR)
    vendor, orders = lifecycle.list_vendor_orders(caller.id, status=status, page=page, limit=limit)
    return order_list_response(orders, vendor_id=str(vendor.id))


@vendor_router.put("/orders/{order_id}/items/{item_id}", response_model=OrderResponse)
async def update_order_item_status(
    order_id: str,
    item_id: str,
    body: UpdateItemStatusRequest,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    caller = _caller(x_user_id, x_user_role, Role.VENDOR)
    order = lifecycle.update_item_status(
        order_id,
        item_id,
        caller.id,
        status=body.status.value,
        tracking_number=body.tracking_number,
    )
    return order_response(order)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int | None = None,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderListResponse:
    _caller(x_user_id, x_user_role, Role.ADMIN)
    return order_list_response(lifecycle.list_all_orders(status=status, search=search, page=page, limit=limit))


@admin_router.get("/orders/{order_id}", response_model=OrderResponse)
async def admin_get_order(
    order_id: str,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    caller = _caller(x_user_id, x_user_role, Role.ADMIN)
    return order_response(lifecycle.get_order(order_id, caller))


@admin_router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def admin_set_order_status(
    order_id: str,
    body: AdminStatusRequest,
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> OrderResponse:
    """Set any status on the order; no stock is moved."""
    caller = _caller(x_user_id, x_user_role, Role.ADMIN)
    order = lifecycle.admin_set_status(order_id, body.status.value, caller.id, reason=body.reason)
    return order_response(order)
