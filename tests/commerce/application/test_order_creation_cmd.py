"""Application tests for order creation: snapshots, stock withdrawal and cart consumption."""

import re

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.cart.queries import cart_snapshot
from commerce.errors import InsufficientStock, Unauthorized
from commerce.order.creation import CreateOrder
from commerce.order.numbering import next_order_number
from commerce.order.order import Order, OrderStatus
from commerce.stock.product import Product
from commerce.stock.sync import UpdateProductPrice


def _stock(product_id="prod-001"):
    return current_domain.repository_for(Product).get(product_id).stock_quantity


class TestCreateFromItems:
    def test_total_and_stock(self, make_product, place_order):
        make_product(sku="TWB001", price=299.99, stock_quantity=10)

        order_id = place_order(items=[{"product_id": "prod-001", "quantity": 2}])

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.total_amount == 599.98
        assert order.items[0].sku == "TWB001"
        assert order.items[0].unit_price == 299.99
        assert _stock() == 8

    def test_later_price_change_does_not_touch_order(self, make_product, place_order):
        make_product(price=299.99)
        order_id = place_order(items=[{"product_id": "prod-001", "quantity": 2}])

        current_domain.process(UpdateProductPrice(product_id="prod-001", price=349.99), asynchronous=False)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.total_amount == 599.98
        assert order.items[0].unit_price == 299.99

    def test_order_number_format(self, make_product, place_order):
        make_product()
        order = current_domain.repository_for(Order).get(
            place_order(items=[{"product_id": "prod-001", "quantity": 1}])
        )
        assert re.fullmatch(r"ORD-\d{8}-\d{4}", order.order_number)
        assert order.order_number.endswith("-0001")

    def test_order_numbers_are_sequential(self, make_product, place_order):
        make_product()
        first = current_domain.repository_for(Order).get(place_order(items=[{"product_id": "prod-001", "quantity": 1}]))
        second = current_domain.repository_for(Order).get(place_order(items=[{"product_id": "prod-001", "quantity": 1}]))
        assert first.order_number != second.order_number
        assert second.order_number.endswith("-0002")
        assert next_order_number().endswith("-0003")

    def test_duplicate_lines_are_merged(self, make_product, place_order):
        make_product()
        order_id = place_order(
            items=[{"product_id": "prod-001", "quantity": 1}, {"product_id": "prod-001", "quantity": 2}]
        )
        order = current_domain.repository_for(Order).get(order_id)
        assert len(order.items) == 1
        assert order.items[0].quantity == 3

    def test_variant_snapshot(self, make_product, place_order):
        make_product(variants=[{"name": "Color", "value": "Gold", "sku": "TWB001-GLD", "price_adjustment": 20.0}])
        variant_id = str(current_domain.repository_for(Product).get("prod-001").variants[0].id)

        order_id = place_order(items=[{"product_id": "prod-001", "variant_id": variant_id, "quantity": 1}])

        item = current_domain.repository_for(Order).get(order_id).items[0]
        assert item.sku == "TWB001-GLD"
        assert item.variant_description == "Color: Gold"
        assert item.unit_price == 319.99


class TestStockGuards:
    def test_insufficient_stock_rejects_whole_order(self, make_product, place_order):
        make_product(stock_quantity=5)
        make_product(product_id="prod-002", sku="CAB01", price=19.99, stock_quantity=1)

        with pytest.raises(InsufficientStock) as exc:
            place_order(items=[{"product_id": "prod-001", "quantity": 2}, {"product_id": "prod-002", "quantity": 2}])

        assert exc.value.available == 1
        assert exc.value.requested == 2
        assert _stock("prod-001") == 5
        assert _stock("prod-002") == 1
        assert current_domain.repository_for(Order)._dao.query.all().total == 0

    def test_last_unit_can_be_bought_once(self, make_product, place_order):
        make_product(stock_quantity=1)
        place_order(customer_id="cust-001", items=[{"product_id": "prod-001", "quantity": 1}])
        with pytest.raises(InsufficientStock):
            place_order(customer_id="cust-002", items=[{"product_id": "prod-001", "quantity": 1}])
        assert _stock() == 0

    def test_untracked_product_is_not_limited(self, make_product, place_order):
        make_product(stock_quantity=0, track_quantity=False)
        order_id = place_order(items=[{"product_id": "prod-001", "quantity": 3}])
        assert current_domain.repository_for(Order).get(order_id).total_amount == 899.97

    def test_unknown_product(self, place_order):
        with pytest.raises(ValidationError):
            place_order(items=[{"product_id": "prod-missing", "quantity": 1}])


class TestCreateFromCart:
    def test_cart_lines_are_consumed(self, make_product, add_to_cart, place_order):
        make_product()
        add_to_cart("cust-001", "prod-001", quantity=2)

        order_id = place_order()

        assert current_domain.repository_for(Order).get(order_id).total_amount == 599.98
        assert cart_snapshot("cust-001").lines == []
        assert _stock() == 8

    def test_selected_lines_only(self, make_product, add_to_cart, place_order):
        make_product()
        make_product(product_id="prod-002", sku="CAB01", price=19.99)
        add_to_cart("cust-001", "prod-001")
        snapshot = add_to_cart("cust-001", "prod-002")
        cable_line = next(line.line_id for line in snapshot.lines if line.product_id == "prod-002")

        order_id = place_order(cart_line_ids=[cable_line])

        assert current_domain.repository_for(Order).get(order_id).total_amount == 19.99
        remaining = cart_snapshot("cust-001").lines
        assert [line.product_id for line in remaining] == ["prod-001"]

    def test_empty_cart(self, place_order):
        with pytest.raises(ValidationError) as exc:
            place_order()
        assert exc.value.messages == {"cart": ["Your cart is empty"]}

    def test_failed_order_keeps_cart(self, make_product, add_to_cart, place_order):
        make_product(stock_quantity=2)
        add_to_cart("cust-001", "prod-001", quantity=2)
        product = current_domain.repository_for(Product).get("prod-001")
        product.withdraw(1)
        current_domain.repository_for(Product).add(product)

        with pytest.raises(InsufficientStock):
            place_order()

        assert cart_snapshot("cust-001").item_count == 2


class TestAuthorization:
    def test_cannot_order_for_someone_else(self, make_product, address):
        import json

        make_product()
        with pytest.raises(Unauthorized):
            current_domain.process(
                CreateOrder(
                    customer_id="cust-001",
                    shipping_address=json.dumps(address),
                    items=json.dumps([{"product_id": "prod-001", "quantity": 1}]),
                    actor_id="cust-002",
                ),
                asynchronous=False,
            )
