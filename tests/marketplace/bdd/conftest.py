"""Shared BDD fixtures and step definitions for the Marketplace order lifecycle."""

import pytest
from marketplace.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def catalog():
    """Product ids by title."""
    return {}


@pytest.fixture()
def vendors():
    """Vendor ids by store name."""
    return {}


@pytest.fixture()
def error():
    """Container for a captured business-rule failure."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a vendor "{store_name}" operated by "{owner_id}"'))
def _(make_vendor, vendors, store_name, owner_id):
    vendors[store_name] = make_vendor(store_name=store_name, owner_id=owner_id)


@given(parsers.cfparse('"{store_name}" lists "{title}" at {price:f} with {quantity:d} in stock'))
def _(make_product, catalog, vendors, store_name, title, price, quantity):
    catalog[title] = make_product(title=title, price=price, quantity=quantity, vendor=vendors[store_name])


@given(parsers.cfparse('a product "{title}" priced {price:f} with {quantity:d} in stock'))
def _(make_product, catalog, title, price, quantity):
    catalog[title] = make_product(title=title, price=price, quantity=quantity)


@given(parsers.cfparse('the customer ordered {quantity:d} of "{title}"'), target_fixture="order")
def _(place_order, catalog, title, quantity):
    return place_order([{"product_id": catalog[title], "quantity": quantity}])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    stored = current_domain.repository_for(Order).get(order.id)
    assert stored.status == status
    assert stored.latest_entry.status == status


@then(parsers.cfparse("the order timeline has {count:d} entries"))
def _(order, count):
    stored = current_domain.repository_for(Order).get(order.id)
    assert len(stored.timeline) == count


@then(parsers.cfparse('"{title}" has {quantity:d} in stock'))
def _(catalog, stock_of, title, quantity):
    assert stock_of(catalog[title]) == quantity


@then(parsers.cfparse('the request fails with "{message}"'))
def _(error, message):
    assert isinstance(error["exc"], ValidationError)
    assert message in str(error["exc"].messages)


@then("no order was stored")
def _():
    assert current_domain.repository_for(Order).count_orders() == 0
