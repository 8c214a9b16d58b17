"""Tests for Product stock movements: withdrawal never drives tracked stock negative."""

import pytest
from protean.exceptions import ValidationError

from commerce.errors import ConsistencyViolation, InsufficientStock
from commerce.stock.events import StockReplenished, StockWithdrawn
from commerce.stock.product import ListingStatus, Product


def _product(stock=10, track_quantity=True):
    product = Product.register(
        product_id="prod-001",
        vendor_id="vendor-001",
        name="Wireless Headphones",
        sku="TWB001",
        price=299.99,
        stock_quantity=stock,
        track_quantity=track_quantity,
    )
    product._events.clear()
    return product


class TestWithdraw:
    def test_withdraw_decrements_stock(self):
        product = _product(stock=10)
        product.withdraw(3)
        assert product.stock_quantity == 7

    def test_withdraw_raises_event(self):
        product = _product(stock=10)
        product.withdraw(2)
        assert len(product._events) == 1
        event = product._events[0]
        assert isinstance(event, StockWithdrawn)
        assert event.quantity == 2
        assert event.remaining == 8

    def test_withdraw_all_remaining_stock(self):
        product = _product(stock=2)
        product.withdraw(2)
        assert product.stock_quantity == 0

    def test_withdraw_beyond_stock_raises_insufficient_stock(self):
        product = _product(stock=2)
        with pytest.raises(InsufficientStock) as exc:
            product.withdraw(3)
        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert exc.value.messages == {"quantity": ["Only 2 items available"]}
        assert product.stock_quantity == 2

    def test_untracked_product_can_go_below_zero(self):
        product = _product(stock=0, track_quantity=False)
        product.withdraw(5)
        assert product.stock_quantity == -5

    def test_zero_quantity_is_rejected(self):
        product = _product()
        with pytest.raises(ValidationError):
            product.withdraw(0)

    def test_unknown_variant_is_rejected(self):
        product = _product()
        with pytest.raises(ValidationError) as exc:
            product.withdraw(1, variant_id="missing")
        assert "variant_id" in exc.value.messages


class TestVariantStock:
    def test_variant_with_own_stock_limits_withdrawal(self):
        product = _product(stock=10)
        variant = product.add_variant(name="Color", value="Black", stock_quantity=1)
        with pytest.raises(InsufficientStock) as exc:
            product.withdraw(2, variant_id=variant.id)
        assert exc.value.available == 1

    def test_variant_withdrawal_decrements_both_levels(self):
        product = _product(stock=10)
        variant = product.add_variant(name="Color", value="Black", stock_quantity=4)
        product.withdraw(3, variant_id=variant.id)
        assert product.stock_quantity == 7
        assert product.variant(variant.id).stock_quantity == 1

    def test_variant_without_own_stock_draws_on_product(self):
        product = _product(stock=3)
        variant = product.add_variant(name="Size", value="L")
        assert product.available_stock(variant) == 3
        product.withdraw(3, variant_id=variant.id)
        assert product.stock_quantity == 0

    def test_unit_price_includes_variant_adjustment(self):
        product = _product()
        variant = product.add_variant(name="Color", value="Gold", price_adjustment=20.01)
        assert str(product.unit_price(variant)) == "320.00"
        assert variant.description == "Color: Gold"


class TestReplenish:
    def test_replenish_restores_stock(self):
        product = _product(stock=1)
        product.withdraw(1)
        product.replenish(1)
        assert product.stock_quantity == 1
        assert isinstance(product._events[-1], StockReplenished)


class TestInvariant:
    def test_negative_tracked_stock_is_a_consistency_violation(self):
        product = _product(stock=1)
        with pytest.raises(ConsistencyViolation):
            product.stock_quantity = -1


class TestListingStatus:
    def test_deactivate_product(self):
        product = _product()
        product.change_status(ListingStatus.INACTIVE.value)
        assert not product.is_active

    def test_deactivate_variant(self):
        product = _product()
        variant = product.add_variant(name="Color", value="Red")
        product.change_status(ListingStatus.INACTIVE.value, variant_id=variant.id)
        assert not product.variant(variant.id).is_active
        assert product.is_active
