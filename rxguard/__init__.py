"""RxGuard: role-based access control for multi-tenant pharmacy management."""

__version__ = "0.3.0"
