"""Error taxonomy for the RxGuard access-control engine.

Every failure raised by the engine derives from ``RBACError`` and carries a
stable ``code``, a ``message``, the HTTP status a boundary adapter should use,
and optional ``details`` for diagnostics. Nothing in the engine converts an
error into a grant.
"""

from typing import Any, Optional

from fastapi import status


class RBACError(Exception):
    code: str = "RBAC_ERROR"
    message: str = "Access control error"
    http_status: int = status.HTTP_400_BAD_REQUEST
    details: Optional[Any] = None

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if details is not None:
            self.details = details

        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the end user."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.public_message}


class ValidationError(RBACError):
    """Malformed input: unknown permission key, unknown role, empty requirement."""

    code = "VALIDATION_ERROR"
    message = "Validation error"
    http_status = status.HTTP_400_BAD_REQUEST


class AuthenticationError(RBACError):
    """No resolvable actor for the request."""

    code = "AUTHENTICATION_REQUIRED"
    message = "Authentication required"
    http_status = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(RBACError):
    """A resolvable actor lacks a capability or authority over a target.

    The unmet requirement is kept in ``details``; ``public_message`` stays
    generic so the catalog is not leaked to unauthorized callers.
    """

    code = "PERMISSION_DENIED"
    message = "Permission denied"
    http_status = status.HTTP_403_FORBIDDEN

    @property
    def public_message(self) -> str:
        return AuthorizationError.message


class NotFoundError(RBACError):
    code = "NOT_FOUND"
    message = "Actor not found"
    http_status = status.HTTP_404_NOT_FOUND


class ConcurrentModificationError(RBACError):
    """The stored actor changed between read and write."""

    code = "CONCURRENT_MODIFICATION"
    message = "Actor was modified concurrently"
    http_status = status.HTTP_409_CONFLICT
