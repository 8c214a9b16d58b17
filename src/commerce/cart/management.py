"""Cart line management: commands and handler.

Stock checks here are advisory. They stop obviously impossible additions
early; order creation performs the authoritative check.
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.cart.cart import Cart
from commerce.cart.queries import build_snapshot, load_cart
from commerce.domain import commerce
from commerce.stock.ledger import ensure_available, resolve_listing

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class AddToCart:
    owner_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command(part_of="Cart")
class UpdateCartLine:
    """Change quantity (<= 0 removes the line) and optionally the variant."""

    owner_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True)
    variant_id = Identifier()
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command(part_of="Cart")
class RemoveCartLine:
    owner_id = Identifier(required=True)
    line_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command(part_of="Cart")
class RemoveCartLines:
    owner_id = Identifier(required=True)
    line_ids = Text(required=True)  # JSON: list of line ids
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command(part_of="Cart")
class ClearCart:
    owner_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def _authorize(command) -> None:
    actor = Actor.from_command(command)
    actor.require(actor.actor_id == str(command.owner_id), "Only the owner can change this cart")


@commerce.command_handler(part_of=Cart)
class CartLinesHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        _authorize(command)
        cart = load_cart(command.owner_id) or Cart.open(command.owner_id)

        listing = resolve_listing(command.product_id, command.variant_id)
        ensure_available(listing, cart.quantity_after_add(command.product_id, command.variant_id, command.quantity))

        cart.add_product(command.product_id, command.variant_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)
        return build_snapshot(cart)

    @handle(UpdateCartLine)
    def update_line(self, command):
        _authorize(command)
        cart = load_cart(command.owner_id)
        if cart is None:
            raise ObjectNotFoundError(f"Cart for {command.owner_id} not found")
        line = cart.require_line(command.line_id)

        if command.quantity > 0:
            variant_id = command.variant_id or line.variant_id
            listing = resolve_listing(line.product_id, variant_id)
            sibling = cart.line_for(line.product_id, variant_id)
            folded = sibling.quantity if sibling is not None and str(sibling.id) != str(line.id) else 0
            ensure_available(listing, command.quantity + folded)

        cart.update_line(command.line_id, command.quantity, variant_id=command.variant_id)
        current_domain.repository_for(Cart).add(cart)
        return build_snapshot(cart)

    @handle(RemoveCartLine)
    def remove_line(self, command):
        _authorize(command)
        cart = load_cart(command.owner_id)
        if cart is None or not cart.discard_line(command.line_id):
            return False
        current_domain.repository_for(Cart).add(cart)
        return True

    @handle(RemoveCartLines)
    def remove_lines(self, command):
        _authorize(command)
        line_ids = json.loads(command.line_ids) if isinstance(command.line_ids, str) else command.line_ids
        cart = load_cart(command.owner_id)
        if cart is None or not cart.discard_lines(line_ids):
            return False
        current_domain.repository_for(Cart).add(cart)
        return True

    @handle(ClearCart)
    def clear(self, command):
        _authorize(command)
        cart = load_cart(command.owner_id)
        if cart is None:
            return True
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
        logger.info("Cart cleared", owner_id=str(command.owner_id))
        return True
