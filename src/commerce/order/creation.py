"""Order creation from a cart or a direct line list.

Everything happens in the handler's Unit of Work: price snapshots, the
authoritative stock withdrawal, the order itself and the removal of the
consumed cart lines. Any failure (including InsufficientStock on a single
line) leaves no order, no stock movement and an untouched cart.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.cart.cart import Cart
from commerce.cart.queries import EMPTY_CART, load_cart
from commerce.config import get_settings
from commerce.domain import commerce
from commerce.errors import InsufficientStock
from commerce.order.numbering import next_order_number
from commerce.order.order import Order
from commerce.stock.ledger import listing_problem, load_product
from commerce.stock.product import Product

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class CreateOrder:
    """Place an order.

    With `items` the order is built from that list
    (JSON: [{product_id, variant_id, quantity}]) and the cart is left alone.
    Otherwise the customer's cart is consumed: all of it, or only
    `cart_line_ids` (JSON list) when given.
    """

    customer_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: {street, city, state, postal_code, country}
    billing_address = Text()  # JSON, same shape
    items = Text()
    cart_line_ids = Text()
    use_cart = Boolean(default=True)
    notes = Text()
    currency = String(max_length=3)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def _loads(value):
    if value is None or value == "":
        return None
    return json.loads(value) if isinstance(value, str) else value


def _requested_lines(command):
    """(lines, cart, consumed line ids) for the command."""
    direct = _loads(command.items)
    if direct:
        merged = {}
        for entry in direct:
            key = (str(entry["product_id"]), entry.get("variant_id") or None)
            merged[key] = merged.get(key, 0) + int(entry["quantity"])
        return [(product_id, variant_id, qty) for (product_id, variant_id), qty in merged.items()], None, []

    if not command.use_cart:
        raise ValidationError({"items": ["No items to order"]})

    cart = load_cart(command.customer_id)
    if cart is None or not cart.lines:
        raise ValidationError({"cart": [EMPTY_CART]})

    selected = _loads(command.cart_line_ids)
    lines = [line for line in cart.lines if not selected or str(line.id) in {str(i) for i in selected}]
    if not lines:
        raise ValidationError({"cart_line_ids": ["None of the selected lines are in the cart"]})

    return (
        [(str(line.product_id), str(line.variant_id) if line.variant_id else None, line.quantity) for line in lines],
        cart,
        [str(line.id) for line in lines],
    )


def _snapshot(product: Product, variant_id, quantity) -> dict:
    variant = product.variant(variant_id)
    return {
        "product_id": str(product.id),
        "variant_id": str(variant_id) if variant_id else None,
        "vendor_id": str(product.vendor_id),
        "product_name": product.name,
        "sku": variant.sku if variant is not None and variant.sku else product.sku,
        "variant_description": variant.description if variant is not None else None,
        "unit_price": product.unit_price(variant),
        "quantity": quantity,
    }


@commerce.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        actor = Actor.from_command(command)
        actor.require(actor.actor_id == str(command.customer_id), "Orders can only be placed for yourself")

        lines, cart, consumed_line_ids = _requested_lines(command)

        products: dict[str, Product] = {}
        items_data = []
        for product_id, variant_id, quantity in lines:
            product = products.get(product_id) or load_product(product_id)
            problem = listing_problem(product, variant_id)
            if problem is not None:
                raise ValidationError({"items": [f"{product_id}: {problem}"]})
            products[product_id] = product

            # Snapshot before withdrawing so the price is the one the customer saw.
            items_data.append(_snapshot(product, variant_id, quantity))
            try:
                product.withdraw(quantity, variant_id=variant_id)
            except InsufficientStock:
                logger.info(
                    "Order rejected for insufficient stock",
                    customer_id=str(command.customer_id),
                    product_id=product_id,
                    variant_id=variant_id,
                    requested=quantity,
                )
                raise

        order = Order.place(
            customer_id=command.customer_id,
            order_number=next_order_number(),
            items_data=items_data,
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address),
            notes=command.notes,
            currency=command.currency or get_settings().default_currency,
            actor=actor,
        )

        current_domain.repository_for(Order).add(order)
        product_repo = current_domain.repository_for(Product)
        for product in products.values():
            product_repo.add(product)

        if cart is not None:
            cart.consume(consumed_line_ids, order_id=order.id)
            current_domain.repository_for(Cart).add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(command.customer_id),
            total_amount=order.total_amount,
        )
        return str(order.id)
