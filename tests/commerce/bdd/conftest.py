"""Shared BDD fixtures and step definitions for the commerce core."""

import json

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from commerce.cart.management import AddToCart
from commerce.cart.queries import cart_snapshot
from commerce.errors import InsufficientStock, InvalidAmount
from commerce.order.creation import CreateOrder
from commerce.order.order import Order
from commerce.payment.payment import Payment
from commerce.payment.processing import ProcessPayment
from commerce.payment.refund import RefundPayment
from commerce.stock.product import Product
from commerce.stock.sync import RegisterProduct


@pytest.fixture()
def context():
    """Ids produced by earlier steps, plus any error a step captured."""
    return {"order_id": None, "payment_id": None, "error": None}


def _product_by_sku(sku) -> Product:
    return current_domain.repository_for(Product)._dao.query.filter(sku=sku).all().items[0]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{sku}" priced at {price:f} with {stock:d} in stock'))
def _(sku, price, stock):
    current_domain.process(
        RegisterProduct(
            product_id=f"prod-{sku.lower()}",
            vendor_id="vendor-001",
            name=sku,
            sku=sku,
            price=price,
            stock_quantity=stock,
        ),
        asynchronous=False,
    )


@given(parsers.cfparse('customer "{owner_id}" has {quantity:d} of "{sku}" in the cart'))
def _(owner_id, quantity, sku):
    current_domain.process(
        AddToCart(
            owner_id=owner_id,
            product_id=str(_product_by_sku(sku).id),
            quantity=quantity,
            actor_id=owner_id,
        ),
        asynchronous=False,
    )


@given(parsers.cfparse('the stock of "{sku}" drops to {stock:d}'))
def _(sku, stock):
    product = _product_by_sku(sku)
    product.withdraw(product.stock_quantity - stock)
    current_domain.repository_for(Product).add(product)


# ---------------------------------------------------------------------------
# Steps usable as Given or When
# ---------------------------------------------------------------------------
@given(parsers.cfparse('customer "{customer_id}" places an order from the cart'))
@when(parsers.cfparse('customer "{customer_id}" places an order from the cart'))
def _(customer_id, context, address):
    try:
        context["order_id"] = current_domain.process(
            CreateOrder(customer_id=customer_id, shipping_address=json.dumps(address), actor_id=customer_id),
            asynchronous=False,
        )
    except InsufficientStock as exc:
        context["error"] = exc


@given(parsers.cfparse('the customer pays with the "{provider}" provider'))
@when(parsers.cfparse('the customer pays with the "{provider}" provider'))
def _(provider, context):
    order = current_domain.repository_for(Order).get(context["order_id"])
    context["payment_id"] = current_domain.process(
        ProcessPayment(order_id=context["order_id"], provider=provider, actor_id=str(order.customer_id)),
        asynchronous=False,
    )


@when(parsers.cfparse("an administrator refunds {amount:f}"))
def _(amount, context):
    context["error"] = None
    try:
        current_domain.process(
            RefundPayment(payment_id=context["payment_id"], amount=amount, actor_id="admin-001", actor_role="Admin"),
            asynchronous=False,
        )
    except InvalidAmount as exc:
        context["error"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(status, context):
    assert current_domain.repository_for(Order).get(context["order_id"]).status == status


@then(parsers.cfparse("the order total is {total:f}"))
def _(total, context):
    assert current_domain.repository_for(Order).get(context["order_id"]).total_amount == pytest.approx(total)


@then(parsers.cfparse('"{sku}" has {stock:d} in stock'))
def _(sku, stock):
    assert _product_by_sku(sku).stock_quantity == stock


@then(parsers.cfparse('the cart of "{owner_id}" is empty'))
def _(owner_id):
    assert cart_snapshot(owner_id).item_count == 0


@then(parsers.cfparse('the cart of "{owner_id}" still holds {count:d} items'))
def _(owner_id, count):
    assert cart_snapshot(owner_id).item_count == count


@then(parsers.cfparse('the payment is "{status}"'))
def _(status, context):
    assert current_domain.repository_for(Payment).get(context["payment_id"]).status == status


@then(parsers.cfparse("the refunded amount is {amount:f}"))
def _(amount, context):
    payment = current_domain.repository_for(Payment).get(context["payment_id"])
    assert payment.refunded_amount == pytest.approx(amount)
