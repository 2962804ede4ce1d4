# API route definitions (HTTP layer)
# Defines general, auth and user ENDPOINTS

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from .schemas import (
    UserOut,
    UserCreate,
    UserUpdate,
    UserLogin,
    UserStats,
    PasswordChange,
    LoginResponse,
    LogoutResponse,
    PaginatedUsers,
)
from .models import User, UserRole
from .dependencies import get_current_user, RolesGuard
from . import services, db
from .cache import cache_manager
from .config import settings


router = APIRouter()

@router.get("/")
def root():
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring.

    Returns:
        - 200 OK if service and database are healthy (cache down is "degraded")
        - 503 Service Unavailable if the database is unreachable
    """
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
    }

    if await db.check_db_connection():
        health_status["database"] = "connected"
    else:
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        raise HTTPException(status_code=503, detail=health_status)

    if settings.CACHE_ENABLED:
        is_healthy = await cache_manager.health_check()
        health_status["cache"] = "connected" if is_healthy else "disconnected"
        if not is_healthy:
            health_status["status"] = "degraded"  # Service works but cache is down
    else:
        health_status["cache"] = "disabled"

    return health_status


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ============================================================================
# Authentication Endpoints
# ============================================================================

@router.post("/auth/register", response_model=LoginResponse, status_code=201, tags=["auth"])
async def register(user: UserCreate):
    """Register a new account and log it in.

    Args:
        user: UserCreate schema with email, password, names and optional phone/role

    Returns:
        LoginResponse: Access token plus the new user's summary

    Raises:
        400: Validation failed (weak password, bad email)
        409: Email already exists
    """
    return await services.register_user(user)


@router.post("/auth/login", response_model=LoginResponse, tags=["auth"])
async def login(credentials: UserLogin):
    """Authenticate a user and return a JWT access token.

    Raises:
        401: Invalid email or password (also for deactivated accounts)
    """
    return await services.authenticate_user(credentials)


@router.get("/auth/profile", response_model=UserOut, tags=["auth"])
async def profile(current_user: User = Depends(get_current_user)):
    """Get the currently authenticated user's profile.

    Requires:
        Authorization header with valid JWT Bearer token
    """
    return await services.get_user(current_user.id)


@router.post("/auth/logout", response_model=LogoutResponse, tags=["auth"])
async def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return LogoutResponse(message="Logged out successfully", user=current_user.email)


# ============================================================================
# User Management Endpoints
# ============================================================================

@router.post("/users", response_model=UserOut, status_code=201, tags=["users"])
async def create_user(user: UserCreate):
    """Create a user without logging in. 409 when the email is taken."""
    return await services.create_user(user)


@router.get(
    "/users",
    response_model=PaginatedUsers,
    dependencies=[Depends(RolesGuard(UserRole.ADMIN, UserRole.MODERATOR))],
    tags=["users"],
)
async def list_users(
    page: int = Query(settings.DEFAULT_PAGE, ge=1),
    limit: int = Query(settings.DEFAULT_LIMIT, ge=1, le=settings.MAX_LIMIT),
    search: str | None = None,  # matches email, first or last name
    role: UserRole | None = None,
    is_active: bool | None = Query(None, alias="isActive"),
):
    """Paginated user listing, newest first. Admins and moderators only."""
    return await services.list_users(
        page=page,
        limit=limit,
        search=search,
        role=role,
        is_active=is_active,
    )


@router.get("/users/{user_id}", response_model=UserOut, tags=["users"])
async def get_user(user_id: int, current_user: User = Depends(get_current_user)):
    return await services.get_user(user_id)


@router.get("/users/{user_id}/stats", response_model=UserStats, tags=["users"])
async def get_user_stats(user_id: int, current_user: User = Depends(get_current_user)):
    """Product count and account age in days."""
    return await services.get_user_statistics(user_id)


@router.patch("/users/{user_id}", response_model=UserOut, tags=["users"])
async def update_user(
    user_id: int,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
):
    """Partially update a user.

    Callers may update their own account; admins may update anyone and are the
    only ones allowed to change ``role`` or ``isActive``.

    Raises:
        403: Updating someone else's account, or a restricted field
        404: User not found
        409: Email already exists
    """
    return await services.update_user(user_id, data, actor=current_user)


@router.patch("/users/{user_id}/password", status_code=204, tags=["users"])
async def change_password(
    user_id: int,
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
):
    """Replace the password after checking the current one (400 INVALID_PASSWORD otherwise)."""
    await services.change_password(user_id, data, actor=current_user)
    return Response(status_code=204)


@router.delete("/users/{user_id}", status_code=204, tags=["users"])
async def delete_user(user_id: int, admin: User = Depends(RolesGuard(UserRole.ADMIN))):
    """Soft delete: deactivates the account. Admin only."""
    await services.deactivate_user(user_id)
    return Response(status_code=204)


@router.delete("/users/{user_id}/hard", status_code=204, tags=["users"])
async def hard_delete_user(user_id: int, admin: User = Depends(RolesGuard(UserRole.ADMIN))):
    """Permanently remove the user; their products are kept without a creator. Admin only."""
    await services.hard_delete_user(user_id)
    return Response(status_code=204)
