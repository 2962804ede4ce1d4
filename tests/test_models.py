"""
Tests for derived product values.
"""

from decimal import Decimal
from storefront.models import Product, ProductStatus, User, UserRole


def make(price="100.00", discount=None, stock=1, status=ProductStatus.ACTIVE) -> Product:
    return Product(
        name="P",
        price=Decimal(price),
        discount_percent=Decimal(discount) if discount is not None else None,
        stock=stock,
        status=status,
    )


class TestDiscountedPrice:
    def test_quarter_off(self):
        assert make(discount="25").discounted_price == Decimal("75.00")

    def test_no_discount_returns_price(self):
        assert make().discounted_price == Decimal("100.00")

    def test_zero_discount_returns_price(self):
        assert make(discount="0").discounted_price == Decimal("100.00")

    def test_rounds_to_cents(self):
        # 19.99 * 0.85 = 16.9915
        assert make(price="19.99", discount="15").discounted_price == Decimal("16.99")

    def test_full_discount(self):
        assert make(discount="100").discounted_price == Decimal("0.00")


class TestIsInStock:
    def test_active_with_stock(self):
        assert make(stock=3).is_in_stock is True

    def test_active_without_stock(self):
        assert make(stock=0).is_in_stock is False

    def test_inactive_with_stock(self):
        for status in (ProductStatus.DRAFT, ProductStatus.INACTIVE, ProductStatus.DISCONTINUED):
            assert make(stock=3, status=status).is_in_stock is False


def test_full_name():
    user = User(first_name="Ada", last_name="Lovelace", role=UserRole.ADMIN)
    assert user.full_name == "Ada Lovelace"
