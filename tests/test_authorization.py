"""
Unit tests for role resolution and the role guard dependency.
"""

import pytest
from types import SimpleNamespace
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from httpx import AsyncClient, ASGITransport
from storefront.dependencies import authorize, resolve_required_roles, RolesGuard
from storefront.errors import register_exception_handlers
from storefront.models import UserRole

# Request with no matched route, as when a guard is called directly
NO_ROUTE = SimpleNamespace(scope={})


def request_for(*route_guards):
    """Request whose matched route carries the given route-level guards."""
    dependant = SimpleNamespace(dependencies=[SimpleNamespace(call=g) for g in route_guards])
    return SimpleNamespace(scope={"route": SimpleNamespace(dependant=dependant)})


class TestAuthorize:
    def test_no_declared_roles_allows_any_caller(self):
        assert authorize([], UserRole.USER) is True
        assert authorize(set(), None) is True

    def test_matching_role_allowed(self):
        assert authorize([UserRole.ADMIN, UserRole.MODERATOR], UserRole.MODERATOR) is True

    def test_non_matching_role_denied(self):
        assert authorize([UserRole.ADMIN], UserRole.USER) is False

    def test_missing_caller_denied(self):
        assert authorize([UserRole.ADMIN], None) is False

    def test_roles_are_flat(self):
        """Admin does not implicitly satisfy a moderator-only declaration."""
        assert authorize([UserRole.MODERATOR], UserRole.ADMIN) is False


class TestResolveRequiredRoles:
    def test_route_declaration_overrides_router(self):
        roles = resolve_required_roles([UserRole.MODERATOR], [UserRole.ADMIN])
        assert roles == frozenset({UserRole.MODERATOR})

    def test_router_declaration_used_when_route_is_silent(self):
        assert resolve_required_roles(None, [UserRole.ADMIN]) == frozenset({UserRole.ADMIN})
        assert resolve_required_roles([], [UserRole.ADMIN]) == frozenset({UserRole.ADMIN})

    def test_nothing_declared(self):
        assert resolve_required_roles(None) == frozenset()


@pytest.mark.asyncio
class TestRolesGuard:
    async def test_allows_declared_role(self):
        guard = RolesGuard(UserRole.ADMIN)
        admin = SimpleNamespace(id=1, role=UserRole.ADMIN)

        assert await guard(request=NO_ROUTE, current_user=admin) is admin

    async def test_denies_with_403(self):
        guard = RolesGuard(UserRole.ADMIN, UserRole.MODERATOR)
        user = SimpleNamespace(id=2, role=UserRole.USER)

        with pytest.raises(HTTPException) as exc_info:
            await guard(request=NO_ROUTE, current_user=user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["code"] == "FORBIDDEN"
        assert exc_info.value.detail["details"]["requiredRoles"] == ["admin", "moderator"]

    async def test_router_roles_apply_when_route_declares_none(self):
        guard = RolesGuard(router_roles=(UserRole.ADMIN,))

        with pytest.raises(HTTPException):
            await guard(request=NO_ROUTE, current_user=SimpleNamespace(id=3, role=UserRole.MODERATOR))

    async def test_no_roles_means_any_authenticated_user(self):
        guard = RolesGuard()
        user = SimpleNamespace(id=4, role=UserRole.USER)

        assert await guard(request=NO_ROUTE, current_user=user) is user

    async def test_router_guard_defers_to_route_declaration(self):
        router_guard = RolesGuard(router_roles=(UserRole.ADMIN,))
        request = request_for(router_guard, RolesGuard(UserRole.MODERATOR))
        moderator = SimpleNamespace(id=5, role=UserRole.MODERATOR)

        assert router_guard.roles_for(request) == frozenset({UserRole.MODERATOR})
        assert await router_guard(request=request, current_user=moderator) is moderator

    async def test_router_guard_applies_when_route_is_silent(self):
        router_guard = RolesGuard(router_roles=(UserRole.ADMIN,))
        request = request_for(router_guard)

        with pytest.raises(HTTPException) as exc_info:
            await router_guard(request=request, current_user=SimpleNamespace(id=6, role=UserRole.MODERATOR))

        assert exc_info.value.detail["details"]["requiredRoles"] == ["admin"]

    async def test_route_guard_ignores_router_roles(self):
        guard = RolesGuard(UserRole.MODERATOR, router_roles=(UserRole.ADMIN,))

        assert guard.roles_for(NO_ROUTE) == frozenset({UserRole.MODERATOR})


# ============================================================================
# Router-level default vs route-level declaration over HTTP
# ============================================================================

@pytest.fixture
def guarded_app():
    """App with an admin-only router where one route declares moderator access."""
    guarded = APIRouter(
        prefix="/guarded",
        dependencies=[Depends(RolesGuard(router_roles=(UserRole.ADMIN,)))],
    )

    @guarded.get("/default")
    async def default_route():
        return {"ok": True}

    @guarded.get("/moderated", dependencies=[Depends(RolesGuard(UserRole.MODERATOR))])
    async def moderated_route():
        return {"ok": True}

    guarded_app = FastAPI()
    register_exception_handlers(guarded_app)
    guarded_app.include_router(guarded)
    return guarded_app


@pytest.mark.asyncio
class TestRouteOverridesRouter:
    async def test_route_declaration_admits_moderator(self, guarded_app, moderator_headers):
        async with AsyncClient(transport=ASGITransport(app=guarded_app), base_url="http://test") as ac:
            response = await ac.get("/guarded/moderated", headers=moderator_headers)

        assert response.status_code == 200

    async def test_route_declaration_replaces_router_roles(self, guarded_app, admin_headers):
        async with AsyncClient(transport=ASGITransport(app=guarded_app), base_url="http://test") as ac:
            response = await ac.get("/guarded/moderated", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error"]["details"]["requiredRoles"] == ["moderator"]

    async def test_silent_route_keeps_router_default(self, guarded_app, moderator_headers, admin_headers):
        async with AsyncClient(transport=ASGITransport(app=guarded_app), base_url="http://test") as ac:
            denied = await ac.get("/guarded/default", headers=moderator_headers)
            allowed = await ac.get("/guarded/default", headers=admin_headers)

        assert denied.status_code == 403
        assert denied.json()["error"]["details"]["requiredRoles"] == ["admin"]
        assert allowed.status_code == 200
