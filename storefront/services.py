"""Business logic layer for authentication and user operations.

Handles registration, credential checks, token issuing/verification, user
profile CRUD and statistics. User detail lookups are cached; token
verification always reads the database so deactivation takes effect on the
next request.
"""

from datetime import datetime, timezone

from fastapi import HTTPException, status

from .schemas import (
    UserOut,
    UserSummary,
    UserCreate,
    UserUpdate,
    UserLogin,
    PasswordChange,
    UserStats,
    LoginResponse,
    PaginatedUsers,
    PaginationMeta,
    ErrorCode,
    to_jsonable,
)
from .crud import (
    insert_user,
    select_user,
    select_user_by_email,
    update_user as crud_update_user,
    update_user_password,
    deactivate_user as crud_deactivate_user,
    hard_delete_user as crud_hard_delete_user,
    list_users as crud_list_users,
    count_user_products,
)
from .auth import hash_password, verify_password, create_access_token
from .cache import cache_manager, make_cache_key, USER_BY_ID_PREFIX, PRODUCT_BY_ID_PREFIX
from .config import settings
from .models import User, UserRole
from .utils import total_pages
from .logger import logger

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

# User fields embedded in product detail responses
CREATOR_SUMMARY_FIELDS = frozenset({"email", "first_name", "last_name", "role"})

# ==================== Helper Functions ====================


def _user_not_found(user_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "code": ErrorCode.USER_NOT_FOUND,
            "message": f"User with ID {user_id} not found",
            "details": {"userId": user_id},
        },
    )


def _duplicate_email(email: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": ErrorCode.DUPLICATE_EMAIL,
            "message": "Email already exists",
            "details": {"email": email},
        },
    )


def _token_rejected(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": ErrorCode.INVALID_TOKEN, "message": message, "details": {}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def build_pagination_meta(total: int, page: int, limit: int) -> PaginationMeta:
    """Pagination block shared by every listing endpoint."""
    pages = total_pages(total, limit)
    return PaginationMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=pages,
        has_next_page=page < pages,
        has_previous_page=page > 1,
    )


async def _invalidate_user_cache(user_id: int) -> None:
    if settings.CACHE_ENABLED:
        await cache_manager.delete(make_cache_key(USER_BY_ID_PREFIX, user_id))


async def _invalidate_creator_summaries() -> None:
    # Cached product details embed the creator summary
    if settings.CACHE_ENABLED:
        await cache_manager.delete_pattern(f"{PRODUCT_BY_ID_PREFIX}:*")


def _ensure_self_or_admin(actor: User, user_id: int) -> None:
    if actor.id != user_id and actor.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": ErrorCode.FORBIDDEN,
                "message": "You can only modify your own account",
                "details": {"userId": user_id},
            },
        )


# ==================== Authentication ====================


async def validate_user(email: str, password: str) -> UserOut | None:
    """Check credentials. Returns the user without password, or None for any failure."""
    user = await select_user_by_email(email)
    if user is None:
        logger.warning(f"Authentication failed - user not found: {email}")
        return None
    if not user.is_active:
        logger.warning(f"Authentication failed - user is inactive: {email}")
        return None
    if not verify_password(password, user.hashed_password):
        logger.warning(f"Authentication failed - invalid password for user: {email}")
        return None
    return UserOut.model_validate(user)


def login(user: UserOut | UserSummary) -> LoginResponse:
    """Sign an access token for an already-validated user."""
    claims = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    access_token = create_access_token(data=claims)
    return LoginResponse(
        access_token=access_token,
        user=UserSummary(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
        ),
    )


async def validate_token_payload(claims: dict) -> User:
    """Re-load the token subject so deleted or deactivated accounts are rejected immediately."""
    subject = claims.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise _token_rejected("Token payload is invalid")

    user = await select_user(user_id)
    if user is None:
        logger.warning(f"Token rejected - user no longer exists: id={user_id}")
        raise _token_rejected("User no longer exists")
    if not user.is_active:
        logger.warning(f"Token rejected - user is deactivated: id={user_id}")
        raise _token_rejected("User account is deactivated")
    return user


async def authenticate_user(data: UserLogin) -> LoginResponse:
    """Validate credentials and issue a token. Unknown email and wrong password look identical."""
    logger.info(f"Authentication attempt for user: {data.email}")
    user = await validate_user(data.email, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": ErrorCode.INVALID_CREDENTIALS,
                "message": INVALID_CREDENTIALS_MESSAGE,
                "details": {},
            },
        )
    logger.info(f"Authentication successful for user: {data.email} (id={user.id})")
    return login(user)


async def register_user(data: UserCreate) -> LoginResponse:
    """Create an account and log it in."""
    user = await create_user(data)
    return login(user)


# ==================== User Operations ====================


async def create_user(data: UserCreate) -> UserOut:
    """Create a user; duplicate email is a 409."""
    logger.info(f"Registering new user: {data.email}")
    try:
        user = await insert_user(
            email=data.email,
            hashed_password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=data.role,
        )
    except ValueError as e:
        logger.warning(f"Registration failed - email already exists: {data.email}")
        raise _duplicate_email(data.email) from e

    logger.info(f"User registered successfully: id={user.id} email={user.email}")
    return UserOut.model_validate(user)


async def get_user(user_id: int) -> UserOut:
    """Retrieve a user by ID with caching."""
    cache_key = make_cache_key(USER_BY_ID_PREFIX, user_id)
    if settings.CACHE_ENABLED:
        cached_data = await cache_manager.get(cache_key)
        if cached_data:
            logger.debug(f"Cache hit for user: id={user_id}")
            return UserOut.model_validate(cached_data)

    user = await select_user(user_id)
    if not user:
        logger.warning(f"User not found: id={user_id}")
        raise _user_not_found(user_id)

    user_out = UserOut.model_validate(user)
    if settings.CACHE_ENABLED:
        await cache_manager.set(cache_key, to_jsonable(user_out))
    return user_out


async def list_users(
    page: int = settings.DEFAULT_PAGE,
    limit: int = settings.DEFAULT_LIMIT,
    search: str | None = None,
    role: UserRole | None = None,
    is_active: bool | None = None,
) -> PaginatedUsers:
    """List users newest first with pagination and optional filters."""
    logger.debug(
        f"Listing users: page={page} limit={limit} "
        f"filters=(search={search}, role={role}, is_active={is_active})"
    )
    users, total = await crud_list_users(
        (page - 1) * limit, limit, search=search, role=role, is_active=is_active
    )
    return PaginatedUsers(
        data=[UserOut.model_validate(u) for u in users],
        meta=build_pagination_meta(total, page, limit),
    )


async def update_user(user_id: int, data: UserUpdate, actor: User) -> UserOut:
    """Partially update a user. Role and active flag are admin-only fields."""
    _ensure_self_or_admin(actor, user_id)
    fields = data.model_dump(exclude_unset=True)
    if actor.role != UserRole.ADMIN and ({"role", "is_active"} & fields.keys()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": ErrorCode.FORBIDDEN,
                "message": "Only administrators can change role or active status",
                "details": {"fields": sorted({"role", "is_active"} & fields.keys())},
            },
        )
    # Nullable columns only; required ones keep their value when sent as null
    fields = {k: v for k, v in fields.items() if v is not None or k == "phone"}

    logger.info(f"Updating user: id={user_id} fields={sorted(fields)}")
    try:
        user = await crud_update_user(user_id, fields)
    except ValueError as e:
        raise _duplicate_email(fields.get("email", "")) from e
    if user is None:
        raise _user_not_found(user_id)

    await _invalidate_user_cache(user_id)
    if fields.keys() & CREATOR_SUMMARY_FIELDS:
        await _invalidate_creator_summaries()
    return UserOut.model_validate(user)


async def change_password(user_id: int, data: PasswordChange, actor: User) -> None:
    """Replace a password after verifying the current one."""
    _ensure_self_or_admin(actor, user_id)
    user = await select_user(user_id)
    if user is None:
        raise _user_not_found(user_id)

    if not verify_password(data.current_password, user.hashed_password):
        logger.warning(f"Password change rejected - wrong current password: id={user_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": ErrorCode.INVALID_PASSWORD,
                "message": "Current password is incorrect",
                "details": {},
            },
        )

    await update_user_password(user_id, hash_password(data.new_password))
    logger.info(f"Password changed: id={user_id}")


async def deactivate_user(user_id: int) -> None:
    """Soft delete: the account stays in the database but can no longer log in or use tokens."""
    logger.info(f"Deactivating user: id={user_id}")
    user = await crud_deactivate_user(user_id)
    if user is None:
        raise _user_not_found(user_id)
    await _invalidate_user_cache(user_id)


async def hard_delete_user(user_id: int) -> None:
    """Permanently remove a user. Their products remain with no creator."""
    logger.warning(f"Hard deleting user: id={user_id}")
    deleted = await crud_hard_delete_user(user_id)
    if not deleted:
        raise _user_not_found(user_id)
    await _invalidate_user_cache(user_id)
    await _invalidate_creator_summaries()


async def get_user_statistics(user_id: int) -> UserStats:
    """Product count and account age (whole days) for a user."""
    user = await select_user(user_id)
    if user is None:
        raise _user_not_found(user_id)

    created = user.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    account_age = (datetime.now(timezone.utc) - created).days

    return UserStats(
        user=UserOut.model_validate(user),
        total_products=await count_user_products(user_id),
        account_age=max(0, account_age),
    )
