"""Repository and paged queries for the Order aggregate."""

import math
from dataclasses import dataclass

from marketplace.domain import marketplace
from marketplace.order.order import Order


@dataclass(frozen=True)
class OrderPage:
    """One page of orders, newest first, with the overall match count."""

    orders: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@marketplace.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def order_number_taken(self, order_number) -> bool:
        return self.find_by_order_number(order_number) is not None

    def count_orders(self) -> int:
        return self._dao.query.all().total

    def _page(self, queryset, page, limit) -> OrderPage:
        result = queryset.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
        return OrderPage(orders=list(result.items), page=page, limit=limit, total=result.total)

    def list_for_customer(self, customer_id, status=None, page=1, limit=20) -> OrderPage:
        criteria = {"customer_id": str(customer_id)}
        if status:
            criteria["status"] = status
        return self._page(self._dao.query.filter(**criteria), page, limit)

    def list_for_vendor(self, vendor_id, status=None, page=1, limit=20) -> OrderPage:
        """Orders containing at least one of the vendor's items.

        ``status`` matches the vendor's own items, not the order status.
        """
        if status:
            criteria = {"vendor_item_index__contains": f",{vendor_id}:{status},"}
        else:
            criteria = {"vendor_index__contains": f",{vendor_id},"}
        return self._page(self._dao.query.filter(**criteria), page, limit)

    def list_all(self, status=None, search=None, page=1, limit=20) -> OrderPage:
        criteria = {}
        if status:
            criteria["status"] = status
        if search:
            criteria["order_number__contains"] = search.strip().upper()
        queryset = self._dao.query.filter(**criteria) if criteria else self._dao.query
        return self._page(queryset, page, limit)
