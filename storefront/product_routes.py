# API route definitions (HTTP layer)
# Defines product catalog ENDPOINTS

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from .schemas import (
    ProductCreate,
    ProductUpdate,
    ProductQuery,
    ProductOut,
    ProductDetailOut,
    PaginatedProducts,
    ProductStats,
    StockUpdate,
    DiscountUpdate,
    BulkStatusUpdate,
    BulkStatusResponse,
)
from .models import User, UserRole, ProductStatus, ProductCategory
from .dependencies import get_current_user, RolesGuard
from . import product_services
from .config import settings

ADMIN_ONLY = (UserRole.ADMIN,)

router = APIRouter(prefix="/products", tags=["products"])

# Admin-only unless a route declares its own RolesGuard
admin_router = APIRouter(
    prefix="/products/admin",
    tags=["products-admin"],
    dependencies=[Depends(RolesGuard(router_roles=ADMIN_ONLY))],
)


def product_query(
    search: str | None = None,
    category: ProductCategory | None = None,
    status: ProductStatus | None = None,
    min_price: Decimal | None = Query(None, alias="minPrice", ge=0),
    max_price: Decimal | None = Query(None, alias="maxPrice", ge=0),
    featured: bool | None = None,
    in_stock: bool | None = Query(None, alias="inStock"),
    page: int = Query(settings.DEFAULT_PAGE, ge=1),
    limit: int = Query(settings.DEFAULT_LIMIT, ge=1, le=settings.MAX_LIMIT),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
) -> ProductQuery:
    """Collect listing query parameters; sort values are resolved by the query builder."""
    return ProductQuery(
        search=search,
        category=category,
        status=status,
        min_price=min_price,
        max_price=max_price,
        featured=featured,
        in_stock=in_stock,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


# ============================================================================
# Admin Endpoints
# ============================================================================

@admin_router.get("/stats", response_model=ProductStats)
async def product_stats():
    """Catalog totals, per-category counts and average price."""
    return await product_services.get_statistics()


@admin_router.get("/low-stock", response_model=list[ProductOut])
async def low_stock(threshold: int = Query(settings.LOW_STOCK_DEFAULT_THRESHOLD, ge=0)):
    """Active products with 0 < stock <= threshold, lowest stock first."""
    return await product_services.get_low_stock_products(threshold)


@admin_router.post("/bulk-status", response_model=BulkStatusResponse)
async def bulk_status(data: BulkStatusUpdate):
    return await product_services.bulk_update_status(data)


# ============================================================================
# Catalog Endpoints
# ============================================================================

@router.get("", response_model=PaginatedProducts)
async def list_products(query: ProductQuery = Depends(product_query)):
    """List products with search, filters, sorting and pagination.

    Query parameters:
        search: Case-insensitive match on name or description
        category, status: Exact match
        minPrice, maxPrice: Inclusive price range
        featured: Featured flag
        inStock: Only active products with stock > 0
        sortBy: name | price | createdAt | updatedAt | stock (anything else sorts by createdAt)
        sortOrder: ASC | DESC
        page, limit: Pagination (limit capped at MAX_LIMIT)
    """
    return await product_services.list_products(query)


@router.get("/featured", response_model=list[ProductOut])
async def featured_products(
    limit: int = Query(settings.FEATURED_DEFAULT_LIMIT, ge=1, le=settings.MAX_LIMIT),
):
    return await product_services.get_featured_products(limit)


@router.get("/category/{category}", response_model=list[ProductOut])
async def products_by_category(category: ProductCategory):
    return await product_services.get_products_by_category(category)


@router.get("/{product_id}", response_model=ProductDetailOut)
async def get_product(product_id: int):
    return await product_services.get_product(product_id)


@router.post("", response_model=ProductOut, status_code=201)
async def create_product(data: ProductCreate, current_user: User = Depends(get_current_user)):
    """Create a product owned by the caller.

    Raises:
        400: Validation failed
        401: Missing or invalid token
        409: SKU already exists
    """
    return await product_services.create_product(data, creator=current_user)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    data: ProductUpdate,
    current_user: User = Depends(get_current_user),
):
    return await product_services.update_product(product_id, data)


@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: int, admin: User = Depends(RolesGuard(UserRole.ADMIN))):
    await product_services.delete_product(product_id)
    return Response(status_code=204)


# ============================================================================
# Business Rule Endpoints
# ============================================================================

@router.patch("/{product_id}/stock", response_model=ProductOut)
async def update_stock(
    product_id: int,
    data: StockUpdate,
    current_user: User = Depends(get_current_user),
):
    """Apply a signed stock delta.

    Raises:
        400: INSUFFICIENT_STOCK when the result would be negative
        404: Product not found
    """
    return await product_services.update_stock(product_id, data.quantity)


@router.patch("/{product_id}/discount", response_model=ProductOut)
async def apply_discount(
    product_id: int,
    data: DiscountUpdate,
    current_user: User = Depends(get_current_user),
):
    """Set the discount percentage on an active product (400 PRODUCT_NOT_ACTIVE otherwise)."""
    return await product_services.apply_discount(product_id, data.discount_percent)
