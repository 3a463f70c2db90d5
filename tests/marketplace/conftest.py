import itertools

import pytest
from marketplace.order.lifecycle import OrderLifecycle
from marketplace.product.product import Product
from marketplace.product.registration import RegisterProduct
from marketplace.vendor.registration import RegisterVendor
from marketplace.vendor.vendor import Vendor, VendorStatus
from protean import current_domain

SHIPPING_ADDRESS = {
    "full_name": "Ada Lovelace",
    "street": "12 Analytical Way",
    "city": "London",
    "state": "Greater London",
    "zip_code": "N1 9GU",
    "country": "UK",
    "phone": "+44 20 7946 0000",
}

_owner_ids = itertools.count(1)


@pytest.fixture
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture
def make_vendor():
    """Register an active vendor and return its id."""

    def _make(store_name="Acme Goods", owner_id=None):
        owner_id = owner_id or f"user-vendor-{next(_owner_ids)}"
        return current_domain.process(
            RegisterVendor(store_name=store_name, owner_id=owner_id, status=VendorStatus.ACTIVE.value),
            asynchronous=False,
        )

    return _make


@pytest.fixture
def vendor_id(make_vendor):
    return make_vendor(store_name="Acme Goods", owner_id="user-acme")


@pytest.fixture
def make_product(vendor_id):
    """Register a product (for the default vendor unless told otherwise) and return its id."""

    def _make(title="Widget", price=10.0, quantity=5, vendor=None, **overrides):
        return current_domain.process(
            RegisterProduct(
                vendor_id=vendor or vendor_id,
                title=title,
                price=price,
                quantity=quantity,
                **overrides,
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture
def lifecycle():
    return OrderLifecycle()


@pytest.fixture
def place_order(lifecycle, shipping_address):
    """Place an order through the lifecycle with sensible defaults."""

    def _place(items, customer_id="cust-001", payment_method="credit_card", **kwargs):
        return lifecycle.create_order(
            customer_id=customer_id,
            items=items,
            shipping_address=shipping_address,
            payment_method=payment_method,
            **kwargs,
        )

    return _place


@pytest.fixture
def stock_of():
    def _stock(product_id):
        return current_domain.repository_for(Product).get(product_id).inventory.quantity

    return _stock


@pytest.fixture
def vendor_stats():
    def _stats(vendor_id):
        return current_domain.repository_for(Vendor).get(vendor_id).stats

    return _stats
