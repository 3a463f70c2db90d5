"""Marketplace bounded context - multi-vendor order management.

Holds the order lifecycle together with the two collaborators an order
touches inside the same unit of work: the product catalog (inventory
reservations) and vendors (sales counters).
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
