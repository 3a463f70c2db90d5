"""Order lifecycle - the entry point for every order operation.

Mutations are dispatched as commands, each handled in its own unit of work.
Around each dispatch the lifecycle holds the in-process locks for everything
the unit of work touches: the order itself, the products whose stock it
moves, and for placement the order-number sequence. Locks are held until the
unit of work has committed.

After an order is placed, vendor stats are updated outside the order's unit
of work; a stats failure is logged and never undoes the order.
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.errors import Forbidden, InfrastructureError, MarketplaceError, OrderNumberConflict
from marketplace.order.access import Caller, can_view
from marketplace.order.administration import OverrideOrderStatus
from marketplace.order.cancellation import CancelOrder
from marketplace.order.creation import PlaceOrder, parse_requested_items
from marketplace.order.items import UpdateOrderItemStatus
from marketplace.order.order import Order, OrderStatus
from marketplace.order.payment import UpdatePaymentStatus
from marketplace.order.repository import OrderPage
from marketplace.product.product import Product
from marketplace.settings import get_setting
from marketplace.utils.locks import ORDER_NUMBER_KEY, locks, order_key, product_key
from marketplace.vendor.stats import VendorStatsUpdater
from marketplace.vendor.vendor import Vendor

logger = structlog.get_logger(__name__)

DASHBOARD_LIST_SIZE = 10


class OrderLifecycle:
    def __init__(self, stats_updater: VendorStatsUpdater | None = None):
        self.stats_updater = stats_updater or VendorStatsUpdater()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def orders(self):
        return current_domain.repository_for(Order)

    def _dispatch(self, command):
        """Process ``command`` synchronously, translating store failures."""
        try:
            return current_domain.process(command, asynchronous=False)
        except (ValidationError, ObjectNotFoundError, MarketplaceError):
            raise
        except Exception as exc:
            logger.exception(
                "Unit of work failed",
                command=command.__class__.__name__,
            )
            raise InfrastructureError(f"Could not complete {command.__class__.__name__}") from exc

    def _mutate(self, order_id, command):
        """Dispatch a command against an existing order under its locks."""
        order = self.orders.get(str(order_id))
        product_keys = [product_key(item.product_id) for item in order.items]

        with locks.hold(order_key(order.id), *product_keys):
            self._dispatch(command)
        return self.orders.get(str(order.id))

    def _page_bounds(self, page, limit):
        page = 1 if page is None else int(page)
        limit = int(get_setting("DEFAULT_PAGE_SIZE")) if limit is None else int(limit)
        max_limit = int(get_setting("MAX_PAGE_SIZE"))

        if page < 1:
            raise ValidationError({"page": ["Page must be a positive integer"]})
        if not 1 <= limit <= max_limit:
            raise ValidationError({"limit": [f"Limit must be between 1 and {max_limit}"]})
        return page, limit

    def _check_status(self, status):
        if status and status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Invalid status: {status}"]})

    def vendor_for(self, user_id) -> Vendor:
        """The vendor operated by ``user_id``."""
        vendor = current_domain.repository_for(Vendor).find_by_owner(user_id)
        if vendor is None:
            raise ObjectNotFoundError({"vendor": ["Vendor profile not found"]})
        return vendor

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_order(
        self,
        customer_id,
        items,
        shipping_address,
        payment_method,
        billing_address=None,
        notes=None,
    ) -> Order:
        """Place an order and count it toward each vendor's stats.

        Args:
            customer_id: The placing customer.
            items: List of ``{"product_id", "quantity"}`` dicts.
            shipping_address: Address dict.
            payment_method: One of ``PaymentMethod``.
            billing_address: Address dict, defaults to the shipping address.
            notes: Optional customer note.
        """
        requested = parse_requested_items(items)
        command = PlaceOrder(
            customer_id=str(customer_id),
            items=json.dumps(items),
            shipping_address=json.dumps(shipping_address),
            billing_address=json.dumps(billing_address) if billing_address else None,
            payment_method=payment_method,
            notes=notes,
        )
        product_keys = [product_key(product_id) for product_id, _ in requested]
        attempts = int(get_setting("ORDER_NUMBER_MAX_ATTEMPTS"))

        order_id = None
        for attempt in range(1, attempts + 1):
            try:
                with locks.hold(ORDER_NUMBER_KEY, *product_keys):
                    order_id = self._dispatch(command)
                break
            except ValidationError as exc:
                if "order_number" not in (exc.messages or {}):
                    raise
                logger.warning(
                    "Order number collided on insert, retrying",
                    customer_id=str(customer_id),
                    attempt=attempt,
                )
        if order_id is None:
            raise OrderNumberConflict(f"Order number kept colliding after {attempts} attempts")

        order = self.orders.get(order_id)
        self.stats_updater.record_order(order)
        return order

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def cancel_order(self, order_id, customer_id) -> Order:
        return self._mutate(order_id, CancelOrder(order_id=str(order_id), customer_id=str(customer_id)))

    def update_payment(
        self,
        order_id,
        customer_id,
        status,
        transaction_id=None,
        payment_intent_id=None,
        refund_amount=None,
    ) -> Order:
        return self._mutate(
            order_id,
            UpdatePaymentStatus(
                order_id=str(order_id),
                customer_id=str(customer_id),
                status=status,
                transaction_id=transaction_id,
                payment_intent_id=payment_intent_id,
                refund_amount=refund_amount,
            ),
        )

    def update_item_status(self, order_id, item_id, user_id, status, tracking_number=None) -> Order:
        """Let the vendor operated by ``user_id`` move one of its items."""
        vendor = self.vendor_for(user_id)
        return self._mutate(
            order_id,
            UpdateOrderItemStatus(
                order_id=str(order_id),
                item_id=str(item_id),
                vendor_id=str(vendor.id),
                status=status,
                tracking_number=tracking_number,
                updated_by=str(user_id),
            ),
        )

    def admin_set_status(self, order_id, status, admin_id, reason=None) -> Order:
        return self._mutate(
            order_id,
            OverrideOrderStatus(
                order_id=str(order_id),
                admin_id=str(admin_id),
                status=status,
                reason=reason,
            ),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id, caller: Caller) -> Order:
        order = self.orders.get(str(order_id))

        vendor_id = None
        if caller.is_vendor:
            vendor = current_domain.repository_for(Vendor).find_by_owner(caller.id)
            vendor_id = str(vendor.id) if vendor else None

        if not can_view(order, caller, vendor_id=vendor_id):
            raise Forbidden("Not authorized to view this order")
        return order

    def list_orders(self, customer_id, status=None, page=None, limit=None) -> OrderPage:
        self._check_status(status)
        page, limit = self._page_bounds(page, limit)
        return self.orders.list_for_customer(customer_id, status=status, page=page, limit=limit)

    def list_vendor_orders(self, user_id, status=None, page=None, limit=None) -> tuple[Vendor, OrderPage]:
        """Orders containing the caller's vendor's items, with the vendor."""
        self._check_status(status)
        page, limit = self._page_bounds(page, limit)
        vendor = self.vendor_for(user_id)
        return vendor, self.orders.list_for_vendor(str(vendor.id), status=status, page=page, limit=limit)

    def list_all_orders(self, status=None, search=None, page=None, limit=None) -> OrderPage:
        self._check_status(status)
        page, limit = self._page_bounds(page, limit)
        return self.orders.list_all(status=status, search=search, page=page, limit=limit)

    def track_order(self, order_number) -> dict:
        """Public progress view of an order, looked up by its number."""
        order = self.orders.find_by_order_number(order_number)
        if order is None:
            raise ObjectNotFoundError({"order_number": [f"Order {order_number} not found"]})

        vendors = current_domain.repository_for(Vendor)
        store_names = {}
        for vendor_id in order.vendor_ids:
            try:
                store_names[vendor_id] = vendors.get(vendor_id).store_name
            except ObjectNotFoundError:
                store_names[vendor_id] = None

        shipping = order.shipping
        return {
            "order_number": order.order_number,
            "status": order.status,
            "timeline": [
                {
                    "status": entry.status,
                    "message": entry.message,
                    "timestamp": entry.timestamp,
                    "updated_by": entry.updated_by,
                }
                for entry in order.entries
            ],
            "shipping": {
                "method": shipping.method if shipping else None,
                "carrier": shipping.carrier if shipping else None,
                "tracking_number": shipping.tracking_number if shipping else None,
                "estimated_delivery": shipping.estimated_delivery if shipping else None,
                "shipped_at": shipping.shipped_at if shipping else None,
                "delivered_at": shipping.delivered_at if shipping else None,
            },
            "items": [
                {
                    "title": item.title,
                    "vendor": store_names.get(str(item.vendor_id)),
                    "status": item.status,
                    "tracking_number": item.tracking_number,
                }
                for item in order.line_items
            ],
        }

    def vendor_dashboard(self, user_id) -> dict:
        """Sales counters, newest orders and low-stock products for the caller's vendor."""
        vendor = self.vendor_for(user_id)
        recent = self.orders.list_for_vendor(str(vendor.id), page=1, limit=DASHBOARD_LIST_SIZE)
        low_stock = current_domain.repository_for(Product).low_stock_for_vendor(
            str(vendor.id), limit=DASHBOARD_LIST_SIZE
        )
        stats = vendor.stats
        return {
            "vendor": vendor,
            "stats": {
                "total_orders": stats.total_orders if stats else 0,
                "total_revenue": stats.total_revenue if stats else 0.0,
            },
            "recent_orders": recent.orders,
            "low_stock_products": low_stock,
        }
