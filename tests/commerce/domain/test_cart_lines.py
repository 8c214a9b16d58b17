"""Tests for Cart line management and merging on the aggregate."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError

from commerce.cart.cart import Cart
from commerce.cart.events import CartLineAdded, CartsMerged


class TestAddProduct:
    def test_new_line(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", None, 2)
        assert len(cart.lines) == 1
        assert line.quantity == 2
        assert cart.item_count == 2

    def test_same_product_and_variant_is_summed(self):
        cart = Cart.open("cust-001")
        cart.add_product("prod-001", "var-001", 2)
        cart.add_product("prod-001", "var-001", 3)
        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 5

    def test_different_variants_get_separate_lines(self):
        cart = Cart.open("cust-001")
        cart.add_product("prod-001", "var-001", 1)
        cart.add_product("prod-001", "var-002", 1)
        cart.add_product("prod-001", None, 1)
        assert len(cart.lines) == 3

    def test_add_raises_event(self):
        cart = Cart.open("cust-001")
        cart.add_product("prod-001", None, 1)
        assert isinstance(cart._events[-1], CartLineAdded)

    def test_zero_quantity_rejected(self):
        cart = Cart.open("cust-001")
        with pytest.raises(ValidationError):
            cart.add_product("prod-001", None, 0)


class TestUpdateLine:
    def test_set_quantity(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", None, 2)
        cart.update_line(line.id, 5)
        assert cart.line(line.id).quantity == 5

    def test_zero_quantity_removes_line(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", None, 2)
        assert cart.update_line(line.id, 0) is None
        assert len(cart.lines) == 0

    def test_changing_variant_onto_existing_line_folds_them(self):
        cart = Cart.open("cust-001")
        black = cart.add_product("prod-001", "var-black", 1)
        cart.add_product("prod-001", "var-white", 2)

        merged = cart.update_line(black.id, 3, variant_id="var-white")

        assert len(cart.lines) == 1
        assert merged.variant_id == "var-white"
        assert merged.quantity == 5

    def test_changing_to_free_variant_moves_line(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", "var-black", 1)
        cart.update_line(line.id, 1, variant_id="var-red")
        assert cart.line(line.id).variant_id == "var-red"

    def test_unknown_line(self):
        cart = Cart.open("cust-001")
        with pytest.raises(ObjectNotFoundError):
            cart.update_line("missing", 1)


class TestRemoval:
    def test_discard_line_reports_change(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", None, 1)
        assert cart.discard_line(line.id) is True
        assert cart.discard_line(line.id) is False

    def test_discard_lines_true_if_any_removed(self):
        cart = Cart.open("cust-001")
        line = cart.add_product("prod-001", None, 1)
        assert cart.discard_lines([line.id, "missing"]) is True
        assert cart.discard_lines(["missing"]) is False

    def test_clear_empties_cart(self):
        cart = Cart.open("cust-001")
        cart.add_product("prod-001", None, 1)
        cart.add_product("prod-002", None, 1)
        assert cart.clear() is True
        assert len(cart.lines) == 0


class TestAbsorb:
    def test_quantities_are_conserved_for_shared_lines(self):
        guest = Cart.open("guest-001")
        guest.add_product("prod-001", None, 2)
        customer = Cart.open("cust-001")
        customer.add_product("prod-001", None, 3)

        summed, moved = customer.absorb(guest)

        assert (summed, moved) == (1, 0)
        assert customer.line_for("prod-001").quantity == 5
        assert len(guest.lines) == 0

    def test_unique_lines_are_moved(self):
        guest = Cart.open("guest-001")
        guest.add_product("prod-002", "var-001", 4)
        customer = Cart.open("cust-001")
        customer.add_product("prod-001", None, 1)

        summed, moved = customer.absorb(guest)

        assert (summed, moved) == (0, 1)
        assert customer.line_for("prod-002", "var-001").quantity == 4
        assert customer.item_count == 5

    def test_total_items_are_conserved(self):
        guest = Cart.open("guest-001")
        guest.add_product("prod-001", None, 2)
        guest.add_product("prod-002", None, 1)
        customer = Cart.open("cust-001")
        customer.add_product("prod-001", None, 3)
        before = guest.item_count + customer.item_count

        customer.absorb(guest)

        assert customer.item_count == before
        assert len({line.key for line in customer.lines}) == len(customer.lines)

    def test_absorb_raises_event(self):
        guest = Cart.open("guest-001")
        guest.add_product("prod-001", None, 1)
        customer = Cart.open("cust-001")
        customer.absorb(guest)
        event = customer._events[-1]
        assert isinstance(event, CartsMerged)
        assert event.moved_lines == 1

    def test_cannot_absorb_itself(self):
        cart = Cart.open("cust-001")
        with pytest.raises(ValidationError):
            cart.absorb(cart)
