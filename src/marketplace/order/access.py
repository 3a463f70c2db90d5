"""Who may see an order.

Callers arrive already authenticated; the marketplace only decides what an
identified caller in a given role is allowed to read.
"""

from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    id: str
    role: str = Role.CUSTOMER.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR.value


def can_view(order, caller: Caller, vendor_id=None) -> bool:
    """The placing customer, a vendor with items on the order, or an admin."""
    if caller.is_admin:
        return True
    if str(order.customer_id) == str(caller.id):
        return True
    return vendor_id is not None and order.involves_vendor(vendor_id)
