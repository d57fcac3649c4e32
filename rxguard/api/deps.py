"""FastAPI dependencies that put the enforcement gate in front of routes.

The engine itself never builds HTTP responses. These adapters translate
``RBACError`` into ``HTTPException`` using each error's ``http_status`` and
public message, so a Deny never reveals which permission was missing.
"""

import logging
from typing import Optional, Union

from fastapi import HTTPException, Request, status

from rxguard.core.errors import RBACError
from rxguard.core.rbac.actor import Actor
from rxguard.core.rbac.gate import EnforcementGate, Requirement, RequirementMode
from rxguard.core.rbac.permissions import PermissionKey
from rxguard.core.rbac.policy import get_policy
from rxguard.core.rbac.resolver import PermissionResolver
from rxguard.core.sessions import SessionAuthenticator

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Key"


def to_http_exception(exc: RBACError) -> HTTPException:
    """Map an engine error onto the HTTP status it declares."""
    headers = {"WWW-Authenticate": "Session"} if exc.http_status == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=exc.http_status, detail=exc.public_message, headers=headers)


def get_current_actor(request: Request) -> Actor:
    """Actor placed on ``request.state`` by the authentication layer."""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Session"},
        )
    return actor


class SessionActor:
    """
    FastAPI dependency resolving the session header into a fresh actor.

    Usage:
        authenticate = SessionActor(SessionAuthenticator(sessions, store))

        @router.get("/me")
        def me(actor: Actor = Depends(authenticate)):
            ...
    """

    def __init__(self, authenticator: SessionAuthenticator, header: str = SESSION_HEADER):
        self.authenticator = authenticator
        self.header = header

    def __call__(self, request: Request) -> Actor:
        try:
            actor = self.authenticator.authenticate(request.headers.get(self.header))
        except RBACError as exc:
            raise to_http_exception(exc) from None
        request.state.actor = actor
        return actor


class RequirePermission:
    """
    FastAPI dependency for permission checking.

    Usage:
        @router.post("/sales", dependencies=[Depends(RequirePermission("CREATE_SALE"))])
        def create_sale():
            ...

        @router.get("/reports", dependencies=[Depends(RequirePermission(
            "VIEW_SALES_REPORTS", "VIEW_INVENTORY_REPORTS", mode="any"))])
        def reports():
            ...
    """

    def __init__(
        self,
        *permissions: Union[str, PermissionKey],
        mode: Union[str, RequirementMode] = RequirementMode.SINGLE,
        gate: Optional[EnforcementGate] = None,
    ):
        # Unknown keys fail here, at route definition time
        self.requirement = Requirement.build(permissions, mode)
        self._gate = gate

    @property
    def gate(self) -> EnforcementGate:
        """Gate over the configured policy, built on first use.

        Routes are declared at import time, before settings may be final, so
        the policy is resolved when the first request arrives.
        """
        if self._gate is None:
            self._gate = EnforcementGate(PermissionResolver(get_policy()))
        return self._gate

    def __call__(self, request: Request) -> Actor:
        actor = getattr(request.state, "actor", None)
        try:
            self.gate.enforce(actor, self.requirement)
        except RBACError as exc:
            logger.debug(f"Denied {request.method} {request.url.path}: {exc.message}")
            raise to_http_exception(exc) from None
        return actor
