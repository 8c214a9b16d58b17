"""Application tests for cart line commands and cart queries."""

import json
from decimal import Decimal

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from commerce.cart.management import ClearCart, RemoveCartLine, RemoveCartLines, UpdateCartLine
from commerce.cart.queries import (
    EMPTY_CART,
    EMPTY_CART_SUMMARY,
    OUT_OF_STOCK_SUMMARY,
    cart_snapshot,
    cart_summary,
    item_count,
    validate_cart,
)
from commerce.errors import InsufficientStock, Unauthorized
from commerce.stock.product import Product
from commerce.stock.sync import ChangeListingStatus, UpdateProductPrice


def _variant_id(product_id, index=0):
    return str(current_domain.repository_for(Product).get(product_id).variants[index].id)


class TestAddToCart:
    def test_add_returns_priced_snapshot(self, make_product, add_to_cart):
        make_product(price=299.99)
        snapshot = add_to_cart("cust-001", "prod-001", quantity=2)
        assert snapshot.item_count == 2
        assert snapshot.subtotal == Decimal("599.98")
        assert snapshot.lines[0].product_name == "Wireless Headphones"

    def test_adding_twice_sums_the_line(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001", quantity=1)
        snapshot = add_to_cart("cust-001", "prod-001", quantity=2)
        assert len(snapshot.lines) == 1
        assert snapshot.lines[0].quantity == 3

    def test_cannot_add_more_than_stock(self, make_product, add_to_cart):
        make_product(stock_quantity=2)
        add_to_cart("cust-001", "prod-001", quantity=2)
        with pytest.raises(InsufficientStock) as exc:
            add_to_cart("cust-001", "prod-001", quantity=1)
        assert exc.value.available == 2
        assert exc.value.requested == 3

    def test_unknown_product(self, add_to_cart):
        with pytest.raises(ValidationError) as exc:
            add_to_cart("cust-001", "prod-missing")
        assert exc.value.messages == {"product_id": ["Product is no longer available"]}

    def test_inactive_product(self, make_product, add_to_cart):
        make_product()
        current_domain.process(ChangeListingStatus(product_id="prod-001", status="Inactive"), asynchronous=False)
        with pytest.raises(ValidationError):
            add_to_cart("cust-001", "prod-001")

    def test_variant_stock_is_checked(self, make_product, add_to_cart):
        make_product(stock_quantity=10, variants=[{"name": "Color", "value": "Black", "stock_quantity": 1}])
        variant_id = _variant_id("prod-001")
        with pytest.raises(InsufficientStock):
            add_to_cart("cust-001", "prod-001", quantity=2, variant_id=variant_id)

    def test_only_owner_can_add(self, make_product):
        from commerce.cart.management import AddToCart

        make_product()
        with pytest.raises(Unauthorized):
            current_domain.process(
                AddToCart(owner_id="cust-001", product_id="prod-001", quantity=1, actor_id="cust-002"),
                asynchronous=False,
            )


class TestUpdateAndRemove:
    def test_update_quantity(self, make_product, add_to_cart):
        make_product()
        line_id = add_to_cart("cust-001", "prod-001").lines[0].line_id
        snapshot = current_domain.process(
            UpdateCartLine(owner_id="cust-001", line_id=line_id, quantity=4, actor_id="cust-001"),
            asynchronous=False,
        )
        assert snapshot.item_count == 4

    def test_update_to_zero_removes_line(self, make_product, add_to_cart):
        make_product()
        line_id = add_to_cart("cust-001", "prod-001").lines[0].line_id
        snapshot = current_domain.process(
            UpdateCartLine(owner_id="cust-001", line_id=line_id, quantity=0, actor_id="cust-001"),
            asynchronous=False,
        )
        assert snapshot.lines == []

    def test_update_beyond_stock(self, make_product, add_to_cart):
        make_product(stock_quantity=3)
        line_id = add_to_cart("cust-001", "prod-001").lines[0].line_id
        with pytest.raises(InsufficientStock):
            current_domain.process(
                UpdateCartLine(owner_id="cust-001", line_id=line_id, quantity=4, actor_id="cust-001"),
                asynchronous=False,
            )

    def test_update_unknown_line(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001")
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(
                UpdateCartLine(owner_id="cust-001", line_id="missing", quantity=1, actor_id="cust-001"),
                asynchronous=False,
            )

    def test_remove_line(self, make_product, add_to_cart):
        make_product()
        line_id = add_to_cart("cust-001", "prod-001").lines[0].line_id
        removed = current_domain.process(
            RemoveCartLine(owner_id="cust-001", line_id=line_id, actor_id="cust-001"), asynchronous=False
        )
        assert removed is True
        assert item_count("cust-001") == 0

    def test_remove_missing_line_is_false(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001")
        removed = current_domain.process(
            RemoveCartLine(owner_id="cust-001", line_id="missing", actor_id="cust-001"), asynchronous=False
        )
        assert removed is False

    def test_remove_several_lines(self, make_product, add_to_cart):
        make_product()
        make_product(product_id="prod-002", sku="CAB01", price=19.99)
        add_to_cart("cust-001", "prod-001")
        snapshot = add_to_cart("cust-001", "prod-002")
        line_ids = [line.line_id for line in snapshot.lines]
        removed = current_domain.process(
            RemoveCartLines(owner_id="cust-001", line_ids=json.dumps(line_ids), actor_id="cust-001"),
            asynchronous=False,
        )
        assert removed is True
        assert item_count("cust-001") == 0

    def test_clear(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001", quantity=2)
        assert current_domain.process(ClearCart(owner_id="cust-001", actor_id="cust-001"), asynchronous=False)
        assert cart_snapshot("cust-001").lines == []

    def test_admin_can_clear_any_cart(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001")
        current_domain.process(
            ClearCart(owner_id="cust-001", actor_id="admin-001", actor_role="Admin"), asynchronous=False
        )
        assert item_count("cust-001") == 0


class TestCartQueries:
    def test_snapshot_of_missing_cart_is_empty(self):
        snapshot = cart_snapshot("nobody")
        assert snapshot.lines == []
        assert snapshot.subtotal == Decimal("0.00")

    def test_snapshot_uses_current_price(self, make_product, add_to_cart):
        make_product(price=100.00)
        add_to_cart("cust-001", "prod-001", quantity=2)
        current_domain.process(UpdateProductPrice(product_id="prod-001", price=120.00), asynchronous=False)
        assert cart_snapshot("cust-001").subtotal == Decimal("240.00")

    def test_validate_empty_cart(self):
        report = validate_cart("cust-001")
        assert not report.is_valid
        assert report.messages == [EMPTY_CART]

    def test_validate_flags_stock_shortfall(self, make_product, add_to_cart):
        make_product(stock_quantity=5)
        add_to_cart("cust-001", "prod-001", quantity=4)
        product = current_domain.repository_for(Product).get("prod-001")
        product.withdraw(3)
        current_domain.repository_for(Product).add(product)

        report = validate_cart("cust-001")

        assert not report.is_valid
        assert report.lines[0].reason == "Only 2 items available"
        assert report.messages == ["1 item(s) in your cart need attention"]

    def test_validate_flags_inactive_product(self, make_product, add_to_cart):
        make_product()
        add_to_cart("cust-001", "prod-001")
        current_domain.process(ChangeListingStatus(product_id="prod-001", status="Inactive"), asynchronous=False)
        report = validate_cart("cust-001")
        assert report.lines[0].reason == "Product is no longer available"

    def test_summary_totals(self, make_product, add_to_cart):
        make_product(price=299.99, weight_kg=0.4)
        add_to_cart("cust-001", "prod-001", quantity=2)
        summary = cart_summary("cust-001")
        assert summary.subtotal == Decimal("599.98")
        assert summary.estimated_shipping == Decimal("5.80")
        assert summary.estimated_tax == Decimal("60.00")
        assert summary.estimated_total == Decimal("665.78")
        assert summary.item_count == 2
        assert not summary.has_out_of_stock

    def test_summary_of_empty_cart(self):
        summary = cart_summary("cust-001")
        assert summary.estimated_shipping == Decimal("0.00")
        assert summary.estimated_total == Decimal("0.00")
        assert summary.messages == [EMPTY_CART_SUMMARY]
        assert not summary.has_out_of_stock

    def test_summary_flags_out_of_stock(self, make_product, add_to_cart):
        make_product(stock_quantity=1)
        add_to_cart("cust-001", "prod-001")
        product = current_domain.repository_for(Product).get("prod-001")
        product.withdraw(1)
        current_domain.repository_for(Product).add(product)

        summary = cart_summary("cust-001")

        assert summary.has_out_of_stock
        assert summary.messages == [OUT_OF_STOCK_SUMMARY]
