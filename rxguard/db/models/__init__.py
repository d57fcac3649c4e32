"""Database models for RxGuard."""

from rxguard.db.models.user import User

__all__ = [
    "User",
]
