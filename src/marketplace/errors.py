"""Error taxonomy for the marketplace.

Business-rule failures derive from Protean's ``ValidationError`` so they carry
field-level messages and are surfaced as 400s. Missing records use Protean's
``ObjectNotFoundError``. The remaining errors have no Protean counterpart and
derive from ``MarketplaceError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

__all__ = [
    "Forbidden",
    "InfrastructureError",
    "InsufficientStock",
    "InvalidTransition",
    "MarketplaceError",
    "ObjectNotFoundError",
    "OrderNumberConflict",
    "ProductNotFound",
    "ProductUnavailable",
    "ValidationError",
]


class ProductNotFound(ValidationError):
    """A requested product does not exist in the catalog."""

    def __init__(self, product_id):
        super().__init__({"product_id": [f"Product {product_id} not found"]})
        self.product_id = product_id


class ProductUnavailable(ValidationError):
    """A requested product exists but is not active."""

    def __init__(self, product_id, title=None):
        super().__init__({"product_id": [f"Product {title or product_id} is not available"]})
        self.product_id = product_id


class InsufficientStock(ValidationError):
    """Tracked inventory cannot cover the requested quantity."""

    def __init__(self, product_id, title, available, requested):
        super().__init__(
            {"quantity": [f"Insufficient stock for {title}. Available: {available}, requested: {requested}"]}
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidTransition(ValidationError):
    """The order state machine rejects the requested change."""

    def __init__(self, message):
        super().__init__({"status": [message]})


class MarketplaceError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class Forbidden(MarketplaceError):
    """The caller lacks ownership of, or a role for, the requested resource."""


class OrderNumberConflict(MarketplaceError):
    """No free order number could be allocated within the retry budget."""


class InfrastructureError(MarketplaceError):
    """The store failed while applying a unit of work."""
