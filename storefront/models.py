"""SQLAlchemy ORM models for database tables."""

import enum
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Numeric,
    Enum,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .db import Base
from .config import settings


TWO_PLACES = Decimal("0.01")


def _enum_values(enum_cls):
    """Persist enum values ('admin') rather than member names ('ADMIN')."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


class ProductStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class ProductCategory(str, enum.Enum):
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    FOOD = "food"
    BOOKS = "books"
    OTHER = "other"


class User(Base):
    """User model mapped to 'users' table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(settings.USER_EMAIL_MAX_LENGTH), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(settings.USER_NAME_MAX_LENGTH), nullable=False)
    last_name = Column(String(settings.USER_NAME_MAX_LENGTH), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=_enum_values),
        default=UserRole.USER,
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    phone = Column(String(settings.USER_PHONE_MAX_LENGTH), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Weak back-reference; products outlive their creator
    products = relationship("Product", back_populates="created_by", passive_deletes=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class Product(Base):
    """Catalog product mapped to 'products' table."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(settings.PRODUCT_NAME_MAX_LENGTH), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    sku = Column(String(settings.PRODUCT_SKU_MAX_LENGTH), unique=True, nullable=True)
    category = Column(
        Enum(ProductCategory, name="product_category", values_callable=_enum_values),
        default=ProductCategory.OTHER,
        nullable=False,
    )
    status = Column(
        Enum(ProductStatus, name="product_status", values_callable=_enum_values),
        default=ProductStatus.DRAFT,
        nullable=False,
    )
    is_featured = Column(Boolean, default=False, nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=True)
    created_by_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    created_by = relationship("User", back_populates="products")

    __table_args__ = (
        CheckConstraint("price > 0", name="check_price_positive"),
        CheckConstraint("stock >= 0", name="check_stock_non_negative"),
        CheckConstraint(
            "discount_percent IS NULL OR (discount_percent >= 0 AND discount_percent <= 100)",
            name="check_discount_range",
        ),
    )

    @property
    def discounted_price(self) -> Decimal:
        """Price after discount, rounded to cents. Unchanged when no discount applies."""
        price = Decimal(self.price)
        if not self.discount_percent or self.discount_percent <= 0:
            return price.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        discount = price * Decimal(self.discount_percent) / Decimal(100)
        return (price - discount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def is_in_stock(self) -> bool:
        return self.stock > 0 and self.status == ProductStatus.ACTIVE

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
