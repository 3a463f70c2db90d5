"""Order number allocation.

Numbers are the configured prefix followed by the order sequence padded to a
fixed width (``ORD000042``). The next sequence is derived from the number of
stored orders; any number already taken is skipped. Callers allocate while
holding the order-number lock and inside the unit of work that stores the
order, and the unique constraint on ``Order.order_number`` rejects anything
that still collides across processes.
"""

import structlog
from protean.utils.globals import current_domain

from marketplace.errors import OrderNumberConflict
from marketplace.order.order import Order
from marketplace.settings import get_setting

logger = structlog.get_logger(__name__)


def format_order_number(sequence: int, prefix: str | None = None, width: int | None = None) -> str:
    prefix = prefix if prefix is not None else get_setting("ORDER_NUMBER_PREFIX")
    width = width if width is not None else int(get_setting("ORDER_NUMBER_WIDTH"))
    return f"{prefix}{sequence:0{width}d}"


def allocate_order_number() -> str:
    repo = current_domain.repository_for(Order)
    attempts = int(get_setting("ORDER_NUMBER_MAX_ATTEMPTS"))

    sequence = repo.count_orders() + 1
    for _ in range(attempts):
        candidate = format_order_number(sequence)
        if not repo.order_number_taken(candidate):
            return candidate
        logger.info("Order number already taken, probing next", order_number=candidate)
        sequence += 1

    raise OrderNumberConflict(f"Could not allocate an order number after {attempts} attempts")
