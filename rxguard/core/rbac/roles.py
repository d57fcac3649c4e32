"""Default role definitions for RxGuard.

Defines the 4 standard roles, ordered by privilege rank:
1. Super Admin - Full catalog, manages everyone
2. Admin - Pharmacy administration, manages lower roles
3. Pharmacist - Dispensing, inventory and sales finalization
4. Cashier - Front-line sales and customers

Roles are compared only through ``ROLE_RANKS`` / ``compare_roles``.
"""

from enum import Enum
from typing import Dict, FrozenSet, Union

from rxguard.core.errors import ValidationError
from .permissions import ALL_PERMISSIONS, PermissionKey as K


class Role(str, Enum):
    """Coarse privilege tiers assigned to actors."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PHARMACIST = "pharmacist"
    CASHIER = "cashier"

    def __str__(self) -> str:
        return self.value


# Higher rank = more privilege
ROLE_RANKS: Dict[Role, int] = {
    Role.SUPER_ADMIN: 4,
    Role.ADMIN: 3,
    Role.PHARMACIST: 2,
    Role.CASHIER: 1,
}

TOP_ROLE = max(ROLE_RANKS, key=ROLE_RANKS.__getitem__)
SECOND_TIER_ROLE = sorted(ROLE_RANKS, key=ROLE_RANKS.__getitem__)[-2]


def parse_role(value: Union[str, Role]) -> Role:
    """Convert a string to a ``Role``.

    Raises:
        ValidationError: If the role is not recognized
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(
            f"Unknown role: {value!r}",
            code="UNKNOWN_ROLE",
            details={"role": value},
        ) from None


def rank_of(role: Union[str, Role]) -> int:
    return ROLE_RANKS[parse_role(role)]


def compare_roles(left: Union[str, Role], right: Union[str, Role]) -> int:
    """Return a positive number if ``left`` outranks ``right``, 0 for peers."""
    return rank_of(left) - rank_of(right)


def outranks(left: Union[str, Role], right: Union[str, Role]) -> bool:
    return compare_roles(left, right) > 0


def is_top_role(role: Union[str, Role]) -> bool:
    return parse_role(role) is TOP_ROLE


# Super Admin: the entire catalog
SUPER_ADMIN_PERMISSIONS: FrozenSet[K] = ALL_PERMISSIONS

# Admin: administration, no front-line sale handling
ADMIN_PERMISSIONS: FrozenSet[K] = frozenset([
    # Users - everything except deletion
    K.CREATE_USER, K.UPDATE_USER, K.VIEW_USERS,
    K.MANAGE_PERMISSIONS, K.VIEW_USER_ACTIVITY,

    # Pharmacy and branches - full access
    K.MANAGE_PHARMACY, K.VIEW_PHARMACY_INFO, K.UPDATE_PHARMACY_SETTINGS,
    K.CREATE_BRANCH, K.UPDATE_BRANCH, K.DELETE_BRANCH,
    K.VIEW_BRANCHES, K.MANAGE_BRANCHES,

    # Inventory - full access
    K.CREATE_DRUG, K.UPDATE_DRUG, K.DELETE_DRUG, K.VIEW_DRUGS,
    K.MANAGE_DRUGS, K.MANAGE_INVENTORY, K.VIEW_LOW_STOCK, K.TRANSFER_STOCK,

    # Sales - oversight only
    K.VIEW_SALES, K.VIEW_SALE_HISTORY, K.VOID_SALE, K.REFUND_SALE,

    # Customers - full access
    K.CREATE_CUSTOMER, K.UPDATE_CUSTOMER, K.DELETE_CUSTOMER,
    K.VIEW_CUSTOMERS, K.MANAGE_CUSTOMERS, K.VIEW_CUSTOMER_HISTORY,

    # Reports - full access
    K.VIEW_REPORTS, K.GENERATE_REPORTS, K.VIEW_ANALYTICS, K.EXPORT_DATA,
    K.VIEW_FINANCIAL_REPORTS, K.VIEW_INVENTORY_REPORTS, K.VIEW_SALES_REPORTS,

    # System - limited
    K.VIEW_AUDIT_LOGS, K.MANAGE_CRON_JOBS,

    # Expiry - full access
    K.VIEW_EXPIRY_ALERTS, K.MANAGE_EXPIRY_SETTINGS, K.DISPOSE_EXPIRED_DRUGS,
])

# Pharmacist: dispensing, stock and sale finalization
PHARMACIST_PERMISSIONS: FrozenSet[K] = frozenset([
    K.VIEW_USERS,
    K.VIEW_PHARMACY_INFO,
    K.VIEW_BRANCHES,

    K.VIEW_DRUGS, K.UPDATE_DRUG, K.MANAGE_INVENTORY,
    K.VIEW_LOW_STOCK, K.TRANSFER_STOCK,

    K.CREATE_SALE, K.VIEW_SALES, K.FINALIZE_SALE, K.VIEW_SALE_HISTORY,

    K.CREATE_CUSTOMER, K.UPDATE_CUSTOMER, K.VIEW_CUSTOMERS,
    K.VIEW_CUSTOMER_HISTORY,

    K.VIEW_REPORTS, K.VIEW_INVENTORY_REPORTS, K.VIEW_SALES_REPORTS,

    K.VIEW_EXPIRY_ALERTS, K.DISPOSE_EXPIRED_DRUGS,
])

# Cashier: point of sale
CASHIER_PERMISSIONS: FrozenSet[K] = frozenset([
    K.VIEW_BRANCHES,
    K.VIEW_DRUGS, K.VIEW_LOW_STOCK,
    K.CREATE_SALE, K.VIEW_SALES, K.VIEW_SALE_HISTORY,
    K.CREATE_CUSTOMER, K.UPDATE_CUSTOMER, K.VIEW_CUSTOMERS,
    K.VIEW_CUSTOMER_HISTORY,
    K.VIEW_EXPIRY_ALERTS,
])


DEFAULT_ROLES: Dict[Role, dict] = {
    Role.SUPER_ADMIN: {
        "name": "Super Admin",
        "description": "Full access across every pharmacy",
        "permissions": SUPER_ADMIN_PERMISSIONS,
    },
    Role.ADMIN: {
        "name": "Admin",
        "description": "Administers a pharmacy, its branches, staff and inventory",
        "permissions": ADMIN_PERMISSIONS,
    },
    Role.PHARMACIST: {
        "name": "Pharmacist",
        "description": "Dispenses drugs, manages stock and finalizes sales",
        "permissions": PHARMACIST_PERMISSIONS,
    },
    Role.CASHIER: {
        "name": "Cashier",
        "description": "Creates sales and serves customers at the counter",
        "permissions": CASHIER_PERMISSIONS,
    },
}


# Capabilities a role may never hold, whatever its overrides say.
# Supervisory roles must not finalize front-line transactions.
FORBIDDEN_PERMISSIONS: Dict[Role, FrozenSet[K]] = {
    Role.ADMIN: frozenset([K.FINALIZE_SALE]),
}
