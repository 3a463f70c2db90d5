"""Business settings read from the ``[custom]`` section of domain.toml."""

from typing import Any

from protean.utils.globals import current_domain

DEFAULTS: dict[str, Any] = {
    "TAX_RATE": 0.08,
    "FREE_SHIPPING_THRESHOLD": 50.0,
    "FLAT_SHIPPING_COST": 10.0,
    "CURRENCY": "USD",
    "ORDER_NUMBER_PREFIX": "ORD",
    "ORDER_NUMBER_WIDTH": 6,
    "ORDER_NUMBER_MAX_ATTEMPTS": 5,
    "DEFAULT_PAGE_SIZE": 20,
    "MAX_PAGE_SIZE": 100,
}


def get_setting(name: str) -> Any:
    """Return a business setting from the active domain, falling back to its default."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown setting: {name}")

    custom = current_domain.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])
