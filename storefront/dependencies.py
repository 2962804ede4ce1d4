"""FastAPI dependencies for authentication and role-based authorization."""

from collections.abc import Iterable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .auth import decode_access_token
from .models import User, UserRole
from .schemas import ErrorCode
from . import services
from .logger import logger


# ==================== Authentication Dependencies ====================

# auto_error=False so a missing header is a 401 from us, not a framework 403
security = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": ErrorCode.INVALID_TOKEN, "message": message, "details": {}},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    """Resolve the bearer token to a live, active user. Raises 401 otherwise."""
    if credentials is None:
        raise _unauthorized("Missing authentication token")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired authentication token")

    return await services.validate_token_payload(payload)


# ==================== Role Authorization ====================


def resolve_required_roles(
    route_roles: Iterable[UserRole] | None,
    router_roles: Iterable[UserRole] | None = None,
) -> frozenset[UserRole]:
    """Roles a route demands: a route-level declaration overrides the router-level one."""
    if route_roles:
        return frozenset(route_roles)
    return frozenset(router_roles or ())


def authorize(required_roles: Iterable[UserRole], caller_role: UserRole | None) -> bool:
    """Whether ``caller_role`` satisfies ``required_roles``.

    No declared roles means any authenticated caller passes. A missing caller
    is denied. Roles are flat: admin does not imply moderator.
    """
    required = frozenset(required_roles)
    if not required:
        return True
    if caller_role is None:
        return False
    return caller_role in required


class RolesGuard:
    """Route dependency declaring which roles may call it.

    ``RolesGuard(UserRole.ADMIN)`` on a route, or
    ``RolesGuard(router_roles=ADMIN_ONLY)`` in a router's ``dependencies`` for
    a router-wide default. A router-level guard defers to any route-level
    guard on the matched route. Authentication runs first; denial is a 403.
    """

    def __init__(self, *roles: UserRole, router_roles: Iterable[UserRole] = ()):
        self.route_roles = frozenset(roles)
        self.router_roles = frozenset(router_roles)
        self.required_roles = resolve_required_roles(self.route_roles, self.router_roles)

    def roles_for(self, request: Request) -> frozenset[UserRole]:
        if self.route_roles:
            return self.required_roles
        return resolve_required_roles(_route_declared_roles(request), self.router_roles)

    async def __call__(self, request: Request, current_user: User = Depends(get_current_user)) -> User:
        required_roles = self.roles_for(request)
        if not authorize(required_roles, current_user.role):
            logger.warning(
                f"Access denied for user id={current_user.id} role={current_user.role.value}: "
                f"requires one of {sorted(r.value for r in required_roles)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": ErrorCode.FORBIDDEN,
                    "message": "You do not have permission to perform this action",
                    "details": {"requiredRoles": sorted(r.value for r in required_roles)},
                },
            )
        return current_user


def _route_declared_roles(request: Request) -> frozenset[UserRole]:
    """Roles declared by route-level guards on the matched route."""
    route = request.scope.get("route")
    dependant = getattr(route, "dependant", None)
    if dependant is None:
        return frozenset()

    declared: set[UserRole] = set()
    for sub_dependant in dependant.dependencies:
        guard = sub_dependant.call
        if isinstance(guard, RolesGuard):
            declared |= guard.route_roles
    return frozenset(declared)
