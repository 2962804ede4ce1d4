"""Database operations for the product catalog, including the listing query builder."""

from decimal import Decimal

from sqlalchemy import select, func, or_, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from . import db
from .models import Product, ProductStatus, ProductCategory
from .schemas import ProductQuery
from .logger import logger
from .utils import escape_like


# Wire name -> column. Anything else falls back to created_at.
SORTABLE_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "stock": Product.stock,
}
DEFAULT_SORT = "createdAt"


# ==================== Query Builder ====================


def resolve_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, str]:
    """Clamp sort parameters to the allow-list: unknown fields become createdAt, anything but ASC is DESC."""
    safe_sort_by = sort_by if sort_by in SORTABLE_COLUMNS else DEFAULT_SORT
    safe_sort_order = "ASC" if sort_order == "ASC" else "DESC"
    return safe_sort_by, safe_sort_order


def build_product_filters(query: ProductQuery) -> list:
    """Translate listing filters into conjunctive WHERE conditions."""
    conditions: list = []

    if query.search:
        pattern = f"%{escape_like(query.search)}%"
        conditions.append(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.description.ilike(pattern, escape="\\"),
        ))
    if query.category is not None:
        conditions.append(Product.category == query.category)
    if query.status is not None:
        conditions.append(Product.status == query.status)

    if query.min_price is not None and query.max_price is not None:
        conditions.append(Product.price.between(query.min_price, query.max_price))
    elif query.min_price is not None:
        conditions.append(Product.price >= query.min_price)
    elif query.max_price is not None:
        conditions.append(Product.price <= query.max_price)

    if query.featured is not None:
        conditions.append(Product.is_featured == query.featured)
    if query.in_stock:
        conditions.append(Product.stock > 0)
        conditions.append(Product.status == ProductStatus.ACTIVE)

    return conditions


async def find_products(query: ProductQuery) -> tuple[list[Product], int]:
    """Run the filtered, sorted, paginated catalog query. Returns the page and the unpaginated total."""
    conditions = build_product_filters(query)
    sort_by, sort_order = resolve_sort(query.sort_by, query.sort_order)
    sort_column = SORTABLE_COLUMNS[sort_by]

    async with db.async_session() as session:
        count_stmt = select(func.count()).select_from(Product)
        stmt = select(Product)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)

        total = (await session.execute(count_stmt)).scalar() or 0

        # id breaks ties so pages never overlap
        if sort_order == "ASC":
            stmt = stmt.order_by(sort_column.asc(), Product.id.asc())
        else:
            stmt = stmt.order_by(sort_column.desc(), Product.id.desc())
        stmt = stmt.offset((query.page - 1) * query.limit).limit(query.limit)

        products = (await session.execute(stmt)).scalars().all()
        logger.debug(
            f"Catalog query: {len(products)} of {total} products "
            f"(sort={sort_by} {sort_order}, page={query.page}, limit={query.limit})"
        )
        return list(products), total


# ==================== Single Product Operations ====================


async def insert_product(fields: dict, created_by_id: int | None) -> Product:
    """Insert a product. Raises ValueError on duplicate SKU."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                product = Product(**fields, created_by_id=created_by_id)
                session.add(product)
            await session.refresh(product)
            return product
        except IntegrityError as e:
            logger.debug(f"Duplicate SKU rejected: {fields.get('sku')}")
            raise ValueError("duplicate sku") from e


async def select_product(product_id: int, with_creator: bool = False) -> Product | None:
    """Retrieve a product by ID, optionally eager-loading its creator."""
    async with db.async_session() as session:
        stmt = select(Product).where(Product.id == product_id)
        if with_creator:
            stmt = stmt.options(selectinload(Product.created_by))
        result = await session.execute(stmt)
        return result.scalars().first()


async def update_product(product_id: int, fields: dict) -> Product | None:
    """Merge ``fields`` into a product. Returns None if missing, raises ValueError on duplicate SKU."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                product = await session.get(Product, product_id)
                if product is None:
                    return None
                for key, value in fields.items():
                    setattr(product, key, value)
            await session.refresh(product)
            return product
        except IntegrityError as e:
            logger.debug(f"Duplicate SKU rejected on update: product_id={product_id}")
            raise ValueError("duplicate sku") from e


async def adjust_stock(product_id: int, quantity: int) -> Product | None:
    """Add ``quantity`` to stock in one conditional UPDATE.

    The row only changes when the result stays non-negative, so concurrent
    consumers cannot drive stock below zero. Returns the updated product, or
    None when no row matched (missing product or insufficient stock).
    """
    async with db.async_session() as session:
        async with session.begin():
            result = await session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock + quantity >= 0)
                .values(stock=Product.stock + quantity)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            return None
        return await session.get(Product, product_id)


async def delete_product(product_id: int) -> bool:
    """Hard delete a product. Returns False if no row was affected."""
    async with db.async_session() as session:
        async with session.begin():
            result = await session.execute(
                delete(Product)
                .where(Product.id == product_id)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount > 0


async def bulk_update_status(ids: list[int], status: ProductStatus) -> int:
    """Set ``status`` on every listed product. Returns the number of rows changed."""
    async with db.async_session() as session:
        async with session.begin():
            result = await session.execute(
                update(Product)
                .where(Product.id.in_(ids))
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount


# ==================== Catalog Views ====================


async def select_featured(limit: int) -> list[Product]:
    """Active featured products, newest first."""
    async with db.async_session() as session:
        stmt = (
            select(Product)
            .where(Product.is_featured.is_(True), Product.status == ProductStatus.ACTIVE)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        return list((await session.execute(stmt)).scalars().all())


async def select_by_category(category: ProductCategory) -> list[Product]:
    """Active products in ``category`` ordered by name."""
    async with db.async_session() as session:
        stmt = (
            select(Product)
            .where(Product.category == category, Product.status == ProductStatus.ACTIVE)
            .order_by(Product.name.asc(), Product.id.asc())
        )
        return list((await session.execute(stmt)).scalars().all())


async def select_low_stock(threshold: int) -> list[Product]:
    """Active products running low but not sold out (0 < stock <= threshold), lowest first."""
    async with db.async_session() as session:
        stmt = (
            select(Product)
            .where(
                Product.stock <= threshold,
                Product.stock > 0,
                Product.status == ProductStatus.ACTIVE,
            )
            .order_by(Product.stock.asc(), Product.id.asc())
        )
        return list((await session.execute(stmt)).scalars().all())


async def product_statistics() -> dict:
    """Aggregate catalog counts, per-category totals and the average price."""
    async with db.async_session() as session:
        total = (await session.execute(select(func.count()).select_from(Product))).scalar() or 0
        active = (await session.execute(
            select(func.count()).select_from(Product).where(Product.status == ProductStatus.ACTIVE)
        )).scalar() or 0
        out_of_stock = (await session.execute(
            select(func.count()).select_from(Product).where(Product.stock == 0)
        )).scalar() or 0
        by_category_rows = (await session.execute(
            select(Product.category, func.count()).group_by(Product.category).order_by(Product.category)
        )).all()
        average = (await session.execute(select(func.avg(Product.price)))).scalar()

    return {
        "total_products": total,
        "active_products": active,
        "out_of_stock": out_of_stock,
        "by_category": [
            {"category": category, "count": count} for category, count in by_category_rows
        ],
        "average_price": round(float(Decimal(str(average))), 2) if average is not None else 0.0,
    }
