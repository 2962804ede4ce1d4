"""Database CRUD operations for user management."""

from sqlalchemy import select, func, or_, update, delete
from sqlalchemy.exc import IntegrityError

from . import db
from .models import User, UserRole, Product
from .logger import logger
from .utils import escape_like


# ==================== Single User Operations ====================


async def insert_user(
    email: str,
    hashed_password: str,
    first_name: str,
    last_name: str,
    phone: str | None = None,
    role: UserRole | None = None,
) -> User:
    """Insert a new user with hashed password. Raises ValueError on duplicate email."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = User(
                    email=email,
                    hashed_password=hashed_password,
                    first_name=first_name,
                    last_name=last_name,
                    phone=phone,
                    role=role or UserRole.USER,
                    is_active=True,
                )
                session.add(user)
            await session.refresh(user)  # Load server defaults (timestamps)
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected: {email}")
            raise ValueError("duplicate email") from e


async def select_user_by_email(email: str) -> User | None:
    """Retrieve a user by email address (includes the password hash)."""
    async with db.async_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def select_user(user_id: int) -> User | None:
    """Retrieve a user by ID."""
    async with db.async_session() as session:
        return await session.get(User, user_id)


async def update_user(user_id: int, fields: dict) -> User | None:
    """Merge ``fields`` into a user. Returns None if missing, raises ValueError on duplicate email."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    return None
                for key, value in fields.items():
                    setattr(user, key, value)
            await session.refresh(user)
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected on update: user_id={user_id}")
            raise ValueError("duplicate email") from e


async def update_user_password(user_id: int, hashed_password: str) -> bool:
    """Replace a user's password hash. Returns False if the user does not exist."""
    async with db.async_session() as session:
        async with session.begin():
            result = await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(hashed_password=hashed_password)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount > 0


async def deactivate_user(user_id: int) -> User | None:
    """Soft delete: clear the active flag and keep the row."""
    return await update_user(user_id, {"is_active": False})


async def hard_delete_user(user_id: int) -> bool:
    """Permanently delete a user; their products lose the creator reference. Returns False if missing."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                # ON DELETE SET NULL, applied explicitly so it holds without FK enforcement (SQLite)
                await session.execute(
                    update(Product)
                    .where(Product.created_by_id == user_id)
                    .values(created_by_id=None)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(
                    delete(User)
                    .where(User.id == user_id)
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount > 0
        except Exception:
            logger.error(f"Failed to delete user id={user_id}", exc_info=True)
            raise


async def list_users(
    skip: int,
    limit: int,
    search: str | None = None,  # Name or email substring
    role: UserRole | None = None,
    is_active: bool | None = None,
) -> tuple[list[User], int]:
    """List users newest first with optional filters and pagination. Returns users and total count."""
    async with db.async_session() as session:
        conditions: list = []
        if search:
            pattern = f"%{escape_like(search)}%"
            conditions.append(or_(
                User.email.ilike(pattern, escape="\\"),
                User.first_name.ilike(pattern, escape="\\"),
                User.last_name.ilike(pattern, escape="\\"),
            ))
        if role is not None:
            conditions.append(User.role == role)
        if is_active is not None:
            conditions.append(User.is_active == is_active)

        # Total count w/ same filters
        count_stmt = select(func.count()).select_from(User)
        stmt = select(User)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)
        total = (await session.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
        users = (await session.execute(stmt)).scalars().all()
        logger.debug(f"Query executed: returned {len(users)} users out of {total} total")
        return list(users), total


async def count_user_products(user_id: int) -> int:
    """Number of products whose creator is ``user_id``."""
    async with db.async_session() as session:
        stmt = select(func.count()).select_from(Product).where(Product.created_by_id == user_id)
        return (await session.execute(stmt)).scalar() or 0
