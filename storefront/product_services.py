"""Business logic for the product catalog: listing, CRUD, stock and discount rules, admin views."""

from decimal import Decimal

from fastapi import HTTPException, status

from .schemas import (
    ProductCreate,
    ProductUpdate,
    ProductQuery,
    ProductOut,
    ProductDetailOut,
    PaginatedProducts,
    ProductStats,
    BulkStatusUpdate,
    BulkStatusResponse,
    ErrorCode,
    to_jsonable,
)
from . import product_crud
from .cache import cache_manager, make_cache_key, PRODUCT_BY_ID_PREFIX
from .config import settings
from .models import ProductStatus, ProductCategory, User
from .services import build_pagination_meta
from .logger import logger


# ==================== Helper Functions ====================


def _product_not_found(product_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "code": ErrorCode.PRODUCT_NOT_FOUND,
            "message": f"Product with ID {product_id} not found",
            "details": {"productId": product_id},
        },
    )


def _duplicate_sku(sku: str | None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": ErrorCode.DUPLICATE_SKU,
            "message": "Product with this SKU already exists",
            "details": {"sku": sku},
        },
    )


async def _invalidate_product_cache(*product_ids: int) -> None:
    if settings.CACHE_ENABLED and product_ids:
        await cache_manager.delete(
            *(make_cache_key(PRODUCT_BY_ID_PREFIX, pid) for pid in product_ids)
        )


# ==================== Listing ====================


async def list_products(query: ProductQuery) -> PaginatedProducts:
    """Filtered, sorted, paginated catalog listing with page metadata."""
    products, total = await product_crud.find_products(query)
    return PaginatedProducts(
        data=[ProductOut.model_validate(p) for p in products],
        meta=build_pagination_meta(total, query.page, query.limit),
    )


async def get_featured_products(limit: int = settings.FEATURED_DEFAULT_LIMIT) -> list[ProductOut]:
    products = await product_crud.select_featured(limit)
    return [ProductOut.model_validate(p) for p in products]


async def get_products_by_category(category: ProductCategory) -> list[ProductOut]:
    products = await product_crud.select_by_category(category)
    return [ProductOut.model_validate(p) for p in products]


# ==================== Product CRUD ====================


async def create_product(data: ProductCreate, creator: User) -> ProductOut:
    """Create a product owned by ``creator``. Duplicate SKU is a 409."""
    logger.info(f"Creating product: name='{data.name}' sku={data.sku} by user id={creator.id}")
    try:
        product = await product_crud.insert_product(data.model_dump(), created_by_id=creator.id)
    except ValueError as e:
        logger.warning(f"Product creation rejected - duplicate SKU: {data.sku}")
        raise _duplicate_sku(data.sku) from e

    logger.info(f"Product created: id={product.id}")
    return ProductOut.model_validate(product)


async def get_product(product_id: int) -> ProductDetailOut:
    """Single product with its creator, served from cache when possible."""
    cache_key = make_cache_key(PRODUCT_BY_ID_PREFIX, product_id)
    if settings.CACHE_ENABLED:
        cached = await cache_manager.get(cache_key)
        if cached:
            return ProductDetailOut.model_validate(cached)

    product = await product_crud.select_product(product_id, with_creator=True)
    if product is None:
        logger.warning(f"Product not found: id={product_id}")
        raise _product_not_found(product_id)

    product_out = ProductDetailOut.model_validate(product)
    if settings.CACHE_ENABLED:
        await cache_manager.set(cache_key, to_jsonable(product_out))
    return product_out


async def update_product(product_id: int, data: ProductUpdate) -> ProductOut:
    """Merge the fields present in ``data`` into the product."""
    fields = data.model_dump(exclude_unset=True)
    # Required columns cannot be nulled by an explicit null in the body
    nullable = {"description", "sku", "discount_percent"}
    fields = {k: v for k, v in fields.items() if v is not None or k in nullable}

    try:
        product = await product_crud.update_product(product_id, fields)
    except ValueError as e:
        logger.warning(f"Product update rejected - duplicate SKU: {fields.get('sku')}")
        raise _duplicate_sku(fields.get("sku")) from e
    if product is None:
        raise _product_not_found(product_id)

    logger.info(f"Product updated: id={product_id} fields={sorted(fields)}")
    await _invalidate_product_cache(product_id)
    return ProductOut.model_validate(product)


async def delete_product(product_id: int) -> None:
    """Hard delete; 404 when nothing was removed."""
    if not await product_crud.delete_product(product_id):
        raise _product_not_found(product_id)
    logger.info(f"Product deleted: id={product_id}")
    await _invalidate_product_cache(product_id)


# ==================== Business Rules ====================


async def update_stock(product_id: int, quantity: int) -> ProductOut:
    """Apply a signed stock delta. Stock never goes negative and status is left untouched."""
    product = await product_crud.adjust_stock(product_id, quantity)
    if product is None:
        current = await product_crud.select_product(product_id)
        if current is None:
            raise _product_not_found(product_id)
        logger.warning(
            f"Stock update rejected: id={product_id} available={current.stock} requested={abs(quantity)}"
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": ErrorCode.INSUFFICIENT_STOCK,
                "message": f"Insufficient stock. Available: {current.stock}, Requested: {abs(quantity)}",
                "details": {"available": current.stock, "requested": abs(quantity)},
            },
        )

    logger.info(f"Stock updated: id={product_id} delta={quantity} stock={product.stock}")
    await _invalidate_product_cache(product_id)
    return ProductOut.model_validate(product)


async def apply_discount(product_id: int, discount_percent: Decimal) -> ProductOut:
    """Set a discount between 0 and 100 percent on an active product."""
    if discount_percent < 0 or discount_percent > 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": ErrorCode.INVALID_DISCOUNT,
                "message": "Discount must be between 0 and 100",
                "details": {"discountPercent": str(discount_percent)},
            },
        )

    product = await product_crud.select_product(product_id)
    if product is None:
        raise _product_not_found(product_id)
    if product.status != ProductStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": ErrorCode.PRODUCT_NOT_ACTIVE,
                "message": "Cannot apply discount to inactive products",
                "details": {"status": product.status.value},
            },
        )

    updated = await product_crud.update_product(product_id, {"discount_percent": discount_percent})
    if updated is None:
        raise _product_not_found(product_id)

    logger.info(f"Discount applied: id={product_id} discount={discount_percent}%")
    await _invalidate_product_cache(product_id)
    return ProductOut.model_validate(updated)


# ==================== Admin ====================


async def get_statistics() -> ProductStats:
    return ProductStats.model_validate(await product_crud.product_statistics())


async def get_low_stock_products(
    threshold: int = settings.LOW_STOCK_DEFAULT_THRESHOLD,
) -> list[ProductOut]:
    products = await product_crud.select_low_stock(threshold)
    return [ProductOut.model_validate(p) for p in products]


async def bulk_update_status(data: BulkStatusUpdate) -> BulkStatusResponse:
    """Move many products to one status."""
    ids = sorted(set(data.ids))
    updated = await product_crud.bulk_update_status(ids, data.status)
    logger.info(f"Bulk status update: {updated}/{len(ids)} products -> {data.status.value}")
    await _invalidate_product_cache(*ids)
    return BulkStatusResponse(
        message=f"Updated {updated} products to status: {data.status.value}",
        updated=updated,
    )
