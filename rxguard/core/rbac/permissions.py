"""Permission catalog for RxGuard.

Defines every capability the pharmacy application can guard, grouped into
categories for display. The catalog is a closed enumeration: any string that
is not a ``PermissionKey`` value is rejected with ``ValidationError``.

Permission key format: upper snake case, e.g.
  - CREATE_SALE
  - MANAGE_PERMISSIONS
  - VIEW_AUDIT_LOGS
"""

import collections.abc
from enum import Enum
from typing import Iterable, NamedTuple, Union

from rxguard.core.errors import ValidationError


class PermissionKey(str, Enum):
    """Every capability known to the system."""

    # User management
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    VIEW_USERS = "VIEW_USERS"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"
    VIEW_USER_ACTIVITY = "VIEW_USER_ACTIVITY"

    # Pharmacy management
    MANAGE_PHARMACY = "MANAGE_PHARMACY"
    VIEW_PHARMACY_INFO = "VIEW_PHARMACY_INFO"
    UPDATE_PHARMACY_SETTINGS = "UPDATE_PHARMACY_SETTINGS"

    # Branch management
    CREATE_BRANCH = "CREATE_BRANCH"
    UPDATE_BRANCH = "UPDATE_BRANCH"
    DELETE_BRANCH = "DELETE_BRANCH"
    VIEW_BRANCHES = "VIEW_BRANCHES"
    MANAGE_BRANCHES = "MANAGE_BRANCHES"

    # Drugs and inventory
    CREATE_DRUG = "CREATE_DRUG"
    UPDATE_DRUG = "UPDATE_DRUG"
    DELETE_DRUG = "DELETE_DRUG"
    VIEW_DRUGS = "VIEW_DRUGS"
    MANAGE_DRUGS = "MANAGE_DRUGS"
    MANAGE_INVENTORY = "MANAGE_INVENTORY"
    VIEW_LOW_STOCK = "VIEW_LOW_STOCK"
    TRANSFER_STOCK = "TRANSFER_STOCK"

    # Sales
    CREATE_SALE = "CREATE_SALE"
    UPDATE_SALE = "UPDATE_SALE"
    DELETE_SALE = "DELETE_SALE"
    VIEW_SALES = "VIEW_SALES"
    FINALIZE_SALE = "FINALIZE_SALE"
    VOID_SALE = "VOID_SALE"
    REFUND_SALE = "REFUND_SALE"
    VIEW_SALE_HISTORY = "VIEW_SALE_HISTORY"

    # Customers
    CREATE_CUSTOMER = "CREATE_CUSTOMER"
    UPDATE_CUSTOMER = "UPDATE_CUSTOMER"
    DELETE_CUSTOMER = "DELETE_CUSTOMER"
    VIEW_CUSTOMERS = "VIEW_CUSTOMERS"
    MANAGE_CUSTOMERS = "MANAGE_CUSTOMERS"
    VIEW_CUSTOMER_HISTORY = "VIEW_CUSTOMER_HISTORY"

    # Reports and analytics
    VIEW_REPORTS = "VIEW_REPORTS"
    GENERATE_REPORTS = "GENERATE_REPORTS"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    EXPORT_DATA = "EXPORT_DATA"
    VIEW_FINANCIAL_REPORTS = "VIEW_FINANCIAL_REPORTS"
    VIEW_INVENTORY_REPORTS = "VIEW_INVENTORY_REPORTS"
    VIEW_SALES_REPORTS = "VIEW_SALES_REPORTS"

    # System administration
    MANAGE_SYSTEM_SETTINGS = "MANAGE_SYSTEM_SETTINGS"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    MANAGE_CRON_JOBS = "MANAGE_CRON_JOBS"
    BACKUP_RESTORE = "BACKUP_RESTORE"
    SYSTEM_MONITORING = "SYSTEM_MONITORING"

    # Expiry management
    VIEW_EXPIRY_ALERTS = "VIEW_EXPIRY_ALERTS"
    MANAGE_EXPIRY_SETTINGS = "MANAGE_EXPIRY_SETTINGS"
    DISPOSE_EXPIRED_DRUGS = "DISPOSE_EXPIRED_DRUGS"

    def __str__(self) -> str:
        return self.value


class PermissionCategory(NamedTuple):
    """A display grouping of permission keys. Has no effect on resolution."""
    key: str
    name: str
    description: str
    icon: str
    permissions: tuple[PermissionKey, ...]


K = PermissionKey

PERMISSION_CATEGORIES: tuple[PermissionCategory, ...] = (
    PermissionCategory(
        "USER_MANAGEMENT", "User Management",
        "Manage users, roles, and permissions", "FaUsers",
        (K.CREATE_USER, K.UPDATE_USER, K.DELETE_USER, K.VIEW_USERS,
         K.MANAGE_PERMISSIONS, K.VIEW_USER_ACTIVITY),
    ),
    PermissionCategory(
        "PHARMACY_MANAGEMENT", "Pharmacy Management",
        "Manage pharmacy information and settings", "FaHospital",
        (K.MANAGE_PHARMACY, K.VIEW_PHARMACY_INFO, K.UPDATE_PHARMACY_SETTINGS),
    ),
    PermissionCategory(
        "BRANCH_MANAGEMENT", "Branch Management",
        "Manage pharmacy branches", "FaBuilding",
        (K.CREATE_BRANCH, K.UPDATE_BRANCH, K.DELETE_BRANCH, K.VIEW_BRANCHES,
         K.MANAGE_BRANCHES),
    ),
    PermissionCategory(
        "INVENTORY_MANAGEMENT", "Inventory Management",
        "Manage drugs and inventory", "FaPills",
        (K.CREATE_DRUG, K.UPDATE_DRUG, K.DELETE_DRUG, K.VIEW_DRUGS,
         K.MANAGE_DRUGS, K.MANAGE_INVENTORY, K.VIEW_LOW_STOCK, K.TRANSFER_STOCK),
    ),
    PermissionCategory(
        "SALES_MANAGEMENT", "Sales Management",
        "Manage sales and transactions", "FaCashRegister",
        (K.CREATE_SALE, K.UPDATE_SALE, K.DELETE_SALE, K.VIEW_SALES,
         K.FINALIZE_SALE, K.VOID_SALE, K.REFUND_SALE, K.VIEW_SALE_HISTORY),
    ),
    PermissionCategory(
        "CUSTOMER_MANAGEMENT", "Customer Management",
        "Manage customer information", "FaUserFriends",
        (K.CREATE_CUSTOMER, K.UPDATE_CUSTOMER, K.DELETE_CUSTOMER,
         K.VIEW_CUSTOMERS, K.MANAGE_CUSTOMERS, K.VIEW_CUSTOMER_HISTORY),
    ),
    PermissionCategory(
        "REPORTS_ANALYTICS", "Reports & Analytics",
        "View reports and analytics", "FaChartBar",
        (K.VIEW_REPORTS, K.GENERATE_REPORTS, K.VIEW_ANALYTICS, K.EXPORT_DATA,
         K.VIEW_FINANCIAL_REPORTS, K.VIEW_INVENTORY_REPORTS,
         K.VIEW_SALES_REPORTS),
    ),
    PermissionCategory(
        "SYSTEM_ADMINISTRATION", "System Administration",
        "System-level administration", "FaCogs",
        (K.MANAGE_SYSTEM_SETTINGS, K.VIEW_AUDIT_LOGS, K.MANAGE_CRON_JOBS,
         K.BACKUP_RESTORE, K.SYSTEM_MONITORING),
    ),
    PermissionCategory(
        "EXPIRY_MANAGEMENT", "Expiry Management",
        "Manage drug expiry alerts and disposal", "FaExclamationTriangle",
        (K.VIEW_EXPIRY_ALERTS, K.MANAGE_EXPIRY_SETTINGS,
         K.DISPOSE_EXPIRED_DRUGS),
    ),
)


PERMISSION_DESCRIPTIONS: dict[PermissionKey, str] = {
    K.CREATE_USER: "Create new users",
    K.UPDATE_USER: "Update user information",
    K.DELETE_USER: "Delete users",
    K.VIEW_USERS: "View user list and details",
    K.MANAGE_PERMISSIONS: "Assign and manage user permissions",
    K.VIEW_USER_ACTIVITY: "View user activity logs",

    K.MANAGE_PHARMACY: "Full pharmacy management access",
    K.VIEW_PHARMACY_INFO: "View pharmacy information",
    K.UPDATE_PHARMACY_SETTINGS: "Update pharmacy settings",

    K.CREATE_BRANCH: "Create new branches",
    K.UPDATE_BRANCH: "Update branch information",
    K.DELETE_BRANCH: "Delete branches",
    K.VIEW_BRANCHES: "View branch list and details",
    K.MANAGE_BRANCHES: "Full branch management access",

    K.CREATE_DRUG: "Add new drugs to inventory",
    K.UPDATE_DRUG: "Update drug information",
    K.DELETE_DRUG: "Remove drugs from system",
    K.VIEW_DRUGS: "View drug inventory",
    K.MANAGE_DRUGS: "Full drug management access",
    K.MANAGE_INVENTORY: "Manage inventory levels",
    K.VIEW_LOW_STOCK: "View low stock alerts",
    K.TRANSFER_STOCK: "Transfer stock between branches",

    K.CREATE_SALE: "Create new sales transactions",
    K.UPDATE_SALE: "Modify sales transactions",
    K.DELETE_SALE: "Delete sales transactions",
    K.VIEW_SALES: "View sales list and details",
    K.FINALIZE_SALE: "Finalize and complete sales",
    K.VOID_SALE: "Void sales transactions",
    K.REFUND_SALE: "Process refunds",
    K.VIEW_SALE_HISTORY: "View historical sales data",

    K.CREATE_CUSTOMER: "Add new customers",
    K.UPDATE_CUSTOMER: "Update customer information",
    K.DELETE_CUSTOMER: "Remove customers",
    K.VIEW_CUSTOMERS: "View customer list and details",
    K.MANAGE_CUSTOMERS: "Full customer management access",
    K.VIEW_CUSTOMER_HISTORY: "View customer purchase history",

    K.VIEW_REPORTS: "View system reports",
    K.GENERATE_REPORTS: "Generate custom reports",
    K.VIEW_ANALYTICS: "View analytics and insights",
    K.EXPORT_DATA: "Export data and reports",
    K.VIEW_FINANCIAL_REPORTS: "View financial reports",
    K.VIEW_INVENTORY_REPORTS: "View inventory reports",
    K.VIEW_SALES_REPORTS: "View sales reports",

    K.MANAGE_SYSTEM_SETTINGS: "Manage system configuration",
    K.VIEW_AUDIT_LOGS: "View system audit logs",
    K.MANAGE_CRON_JOBS: "Manage scheduled tasks",
    K.BACKUP_RESTORE: "Backup and restore system data",
    K.SYSTEM_MONITORING: "Monitor system performance",

    K.VIEW_EXPIRY_ALERTS: "View drug expiry alerts",
    K.MANAGE_EXPIRY_SETTINGS: "Configure expiry alert settings",
    K.DISPOSE_EXPIRED_DRUGS: "Dispose of expired drugs",
}


def _build_category_index() -> dict[PermissionKey, str]:
    """Map each key to its category, failing fast on gaps or overlaps."""
    index: dict[PermissionKey, str] = {}
    for category in PERMISSION_CATEGORIES:
        for key in category.permissions:
            if key in index:
                raise RuntimeError(
                    f"Permission {key.value} is in both {index[key]} and {category.key}"
                )
            index[key] = category.key

    missing = [key.value for key in PermissionKey if key not in index]
    if missing:
        raise RuntimeError(f"Permissions without a category: {', '.join(missing)}")
    return index


# "KEY" -> category key
CATEGORY_INDEX = _build_category_index()

# The complete catalog
ALL_PERMISSIONS: frozenset[PermissionKey] = frozenset(PermissionKey)

_ORDER = {key: position for position, key in enumerate(PermissionKey)}
_BY_VALUE = {key.value: key for key in PermissionKey}


def parse_permission(value: Union[str, PermissionKey]) -> PermissionKey:
    """Convert a string to a ``PermissionKey``.

    Raises:
        ValidationError: If the value is not in the catalog
    """
    if isinstance(value, PermissionKey):
        return value
    try:
        return PermissionKey(value)
    except ValueError:
        raise ValidationError(
            f"Unknown permission: {value!r}",
            code="UNKNOWN_PERMISSION",
            details={"permission": value},
        ) from None


def validate_permissions(values: Iterable[Union[str, PermissionKey]]) -> frozenset[PermissionKey]:
    """Validate every value before returning any of them.

    All unknown values are reported together; nothing is dropped.
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, collections.abc.Iterable):
        raise ValidationError(
            f"Permissions must be a list of keys, got {type(values).__name__}",
            code="INVALID_PERMISSIONS",
        )

    keys = set()
    unknown = []
    for value in values:
        if isinstance(value, PermissionKey):
            keys.add(value)
        elif isinstance(value, str) and value in _BY_VALUE:
            keys.add(_BY_VALUE[value])
        else:
            unknown.append(value)

    if unknown:
        raise ValidationError(
            f"Unknown permissions: {', '.join(repr(v) for v in unknown)}",
            code="UNKNOWN_PERMISSION",
            details={"permissions": unknown},
        )
    return frozenset(keys)


def is_valid_permission(value: str) -> bool:
    """Check if a string names a catalog permission."""
    return value in _BY_VALUE


def sort_permissions(keys: Iterable[PermissionKey]) -> list[PermissionKey]:
    """Order keys by catalog position for stable storage and output."""
    return sorted(set(keys), key=_ORDER.__getitem__)


def list_categories() -> list[PermissionCategory]:
    return list(PERMISSION_CATEGORIES)


def describe(key: Union[str, PermissionKey]) -> str:
    """Human-readable description of a permission."""
    key = parse_permission(key)
    return PERMISSION_DESCRIPTIONS.get(key, key.value)


def category_of(key: Union[str, PermissionKey]) -> str:
    """Category key for a permission."""
    return CATEGORY_INDEX[parse_permission(key)]


def get_all_permissions() -> list[str]:
    """Get all valid permission strings in catalog order."""
    return [key.value for key in PermissionKey]
