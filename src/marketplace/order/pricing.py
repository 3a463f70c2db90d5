"""Pricing engine - derives an order's monetary summary from its lines.

Pure functions: the same lines, discount and policy always produce the same
pricing. Amounts are rounded to cents at each step so the stored total is
exactly the sum of its stored parts.
"""

from dataclasses import dataclass

from marketplace.order.order import OrderPricing
from marketplace.settings import get_setting


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: float = 0.08
    free_shipping_threshold: float = 50.0
    flat_shipping_cost: float = 10.0
    currency: str = "USD"

    @classmethod
    def from_settings(cls) -> "PricingPolicy":
        """Policy configured for the active domain."""
        return cls(
            tax_rate=float(get_setting("TAX_RATE")),
            free_shipping_threshold=float(get_setting("FREE_SHIPPING_THRESHOLD")),
            flat_shipping_cost=float(get_setting("FLAT_SHIPPING_COST")),
            currency=get_setting("CURRENCY"),
        )


def to_cents(amount: float) -> float:
    return round(amount, 2)


def line_subtotal(price: float, quantity: int) -> float:
    return to_cents(price * quantity)


def shipping_for(subtotal: float, policy: PricingPolicy) -> float:
    """Shipping is free strictly above the threshold."""
    return 0.0 if subtotal > policy.free_shipping_threshold else to_cents(policy.flat_shipping_cost)


def compute_pricing(lines, discount: float = 0.0, policy: PricingPolicy | None = None) -> OrderPricing:
    """Price a set of lines.

    Args:
        lines: Iterable of mappings with ``price`` and ``quantity``.
        discount: Amount taken off the total, never more than the subtotal.
        policy: Rates to apply; defaults to the active domain's settings.
    """
    policy = policy or PricingPolicy.from_settings()

    subtotal = to_cents(sum(line_subtotal(line["price"], line["quantity"]) for line in lines))
    tax = to_cents(subtotal * policy.tax_rate)
    shipping = shipping_for(subtotal, policy)
    discount = to_cents(min(max(discount or 0.0, 0.0), subtotal))
    total = to_cents(subtotal + tax + shipping - discount)

    return OrderPricing(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=total,
        currency=policy.currency,
    )
