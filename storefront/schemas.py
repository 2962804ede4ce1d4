"""Pydantic schemas for request/response validation and serialization.

JSON payloads use camelCase keys; request bodies also accept snake_case.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from .config import settings
from .models import UserRole, ProductStatus, ProductCategory
from .utils import normalize_email


# Decimal in Python, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d@$!%*?&]+$")


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, ORM attribute loading."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ==================== Error Schemas ====================

class ErrorDetail(BaseModel):
    """Machine-readable error code with human message."""
    code: str
    message: str
    details: dict | None = None


class ErrorResponse(CamelModel):
    """Standard error envelope returned for every failed request."""
    status_code: int
    timestamp: datetime
    path: str
    method: str
    error: ErrorDetail | dict | str


class ErrorCode:
    """Centralized error codes for API responses."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_SKU = "DUPLICATE_SKU"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    PRODUCT_NOT_ACTIVE = "PRODUCT_NOT_ACTIVE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _check_password_strength(v: str) -> str:
    if not PASSWORD_PATTERN.match(v):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return v


def _strip_required(v: str) -> str:
    if not v.strip():
        raise ValueError("Value cannot be empty or only whitespace")
    return v.strip()


# ==================== User Schemas ====================

class UserOut(CamelModel):
    """User output schema without password."""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    phone: str | None = None
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    """Trimmed user projection embedded in login responses and product details."""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole


class UserCreate(CamelModel):
    """Schema for user registration."""
    email: EmailStr = Field(..., max_length=settings.USER_EMAIL_MAX_LENGTH, description="User's email address")
    password: str = Field(..., min_length=8, max_length=100, description="Password (min 8 characters, mixed case and a digit)")
    first_name: str = Field(..., min_length=1, max_length=settings.USER_NAME_MAX_LENGTH)
    last_name: str = Field(..., min_length=1, max_length=settings.USER_NAME_MAX_LENGTH)
    phone: str | None = Field(None, max_length=settings.USER_PHONE_MAX_LENGTH)
    role: UserRole | None = None

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is not just whitespace."""
        return _strip_required(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserUpdate(CamelModel):
    """Partial user update. Password changes go through PasswordChange."""
    email: EmailStr | None = Field(None, max_length=settings.USER_EMAIL_MAX_LENGTH)
    first_name: str | None = Field(None, min_length=1, max_length=settings.USER_NAME_MAX_LENGTH)
    last_name: str | None = Field(None, min_length=1, max_length=settings.USER_NAME_MAX_LENGTH)
    phone: str | None = Field(None, max_length=settings.USER_PHONE_MAX_LENGTH)
    role: UserRole | None = None
    is_active: bool | None = None

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        return normalize_email(v) if v is not None else v

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return _strip_required(v) if v is not None else v


class PasswordChange(CamelModel):
    """Current password plus the replacement."""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserStats(CamelModel):
    user: UserOut
    total_products: int
    account_age: int  # days


# ==================== Authentication Schemas ====================

class UserLogin(CamelModel):
    """Schema for user login credentials."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)


class LoginResponse(CamelModel):
    """Signed access token plus the caller's summary."""
    access_token: str
    token_type: str = "bearer"
    user: UserSummary


class LogoutResponse(CamelModel):
    message: str
    user: str


# ==================== Pagination Schemas ====================

class PaginationMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class PaginatedUsers(CamelModel):
    data: list[UserOut]
    meta: PaginationMeta


# ==================== Product Schemas ====================

class ProductCreate(CamelModel):
    """Schema for creating a product; creator is taken from the caller."""
    name: str = Field(..., min_length=1, max_length=settings.PRODUCT_NAME_MAX_LENGTH)
    description: str | None = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    stock: int = Field(0, ge=0)
    sku: str | None = Field(None, min_length=1, max_length=settings.PRODUCT_SKU_MAX_LENGTH)
    category: ProductCategory = ProductCategory.OTHER
    status: ProductStatus = ProductStatus.DRAFT
    is_featured: bool = False
    discount_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _strip_required(v)


class ProductUpdate(CamelModel):
    """Partial product update; only fields present in the body are merged."""
    name: str | None = Field(None, min_length=1, max_length=settings.PRODUCT_NAME_MAX_LENGTH)
    description: str | None = None
    price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(None, ge=0)
    sku: str | None = Field(None, min_length=1, max_length=settings.PRODUCT_SKU_MAX_LENGTH)
    category: ProductCategory | None = None
    status: ProductStatus | None = None
    is_featured: bool | None = None
    discount_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)


class StockUpdate(CamelModel):
    """Signed stock delta: positive replenishes, negative consumes."""
    quantity: int


class DiscountUpdate(CamelModel):
    discount_percent: Decimal = Field(..., ge=0, le=100, decimal_places=2)


class ProductOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    price: Money
    stock: int
    sku: str | None = None
    category: ProductCategory
    status: ProductStatus
    is_featured: bool
    discount_percent: Money | None = None
    created_by_id: int | None = None
    discounted_price: Money
    is_in_stock: bool
    created_at: datetime
    updated_at: datetime


class ProductDetailOut(ProductOut):
    """Single product with its creator summary."""
    created_by: UserSummary | None = None


class PaginatedProducts(CamelModel):
    data: list[ProductOut]
    meta: PaginationMeta


class ProductQuery(CamelModel):
    """Filter, sort and page options for the catalog listing."""
    search: str | None = None
    category: ProductCategory | None = None
    status: ProductStatus | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    featured: bool | None = None
    in_stock: bool | None = None
    page: int = settings.DEFAULT_PAGE
    limit: int = settings.DEFAULT_LIMIT
    sort_by: str = "createdAt"
    sort_order: str = "DESC"


class CategoryCount(CamelModel):
    category: ProductCategory
    count: int


class ProductStats(CamelModel):
    total_products: int
    active_products: int
    out_of_stock: int
    by_category: list[CategoryCount]
    average_price: float


class BulkStatusUpdate(CamelModel):
    ids: list[int] = Field(..., min_length=1, max_length=1000)
    status: ProductStatus


class BulkStatusResponse(CamelModel):
    message: str
    updated: int


def to_jsonable(model: BaseModel) -> dict[str, Any]:
    """Serialize a schema the way responses are rendered (camelCase, JSON types)."""
    return model.model_dump(mode="json", by_alias=True)
