"""Catalog synchronization: commands that keep the Product mirror current.

Only the vendor that lists a product, or an admin, may change its mirror.
Commands without an actor come from the catalog service itself and run as
the system actor.
"""

import json

import structlog
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import SYSTEM_ACTOR, Actor, Role
from commerce.domain import commerce
from commerce.stock.product import Product

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Product")
class RegisterProduct:
    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0)
    track_quantity = Boolean(default=True)
    weight_kg = Float()
    variants = Text()  # JSON: list of {name, value, sku, price_adjustment, stock_quantity}
    actor_id = Identifier()
    actor_role = String(max_length=20)


@commerce.command(part_of="Product")
class AddProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    value = String(required=True, max_length=100)
    sku = String(max_length=100)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer()
    actor_id = Identifier()
    actor_role = String(max_length=20)


@commerce.command(part_of="Product")
class UpdateProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)
    actor_id = Identifier()
    actor_role = String(max_length=20)


@commerce.command(part_of="Product")
class RestockProduct:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    actor_id = Identifier()
    actor_role = String(max_length=20)


@commerce.command(part_of="Product")
class ChangeListingStatus:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    status = String(required=True, max_length=20)
    actor_id = Identifier()
    actor_role = String(max_length=20)


def _catalog_actor(command) -> Actor:
    return Actor.from_command(command) if command.actor_id else SYSTEM_ACTOR


def _require_listing_owner(actor: Actor, vendor_id) -> None:
    actor.require(
        actor.role == Role.VENDOR.value and actor.actor_id == str(vendor_id),
        "Only the listing vendor or an admin can change this product",
    )


@commerce.command_handler(part_of=Product)
class CatalogSyncHandler:
    def _owned_product(self, command):
        product = current_domain.repository_for(Product).get(command.product_id)
        _require_listing_owner(_catalog_actor(command), product.vendor_id)
        return product

    @handle(RegisterProduct)
    def register_product(self, command):
        _require_listing_owner(_catalog_actor(command), command.vendor_id)
        product = Product.register(
            product_id=command.product_id,
            vendor_id=command.vendor_id,
            name=command.name,
            sku=command.sku,
            price=command.price,
            stock_quantity=command.stock_quantity,
            track_quantity=command.track_quantity,
            weight_kg=command.weight_kg,
        )

        variants = json.loads(command.variants) if command.variants else []
        for variant in variants:
            product.add_variant(
                name=variant["name"],
                value=variant["value"],
                sku=variant.get("sku"),
                price_adjustment=variant.get("price_adjustment", 0.0),
                stock_quantity=variant.get("stock_quantity"),
            )

        current_domain.repository_for(Product).add(product)
        logger.info("Product registered", product_id=str(product.id), variants=len(variants))
        return str(product.id)

    @handle(AddProductVariant)
    def add_variant(self, command):
        product = self._owned_product(command)
        variant = product.add_variant(
            name=command.name,
            value=command.value,
            sku=command.sku,
            price_adjustment=command.price_adjustment,
            stock_quantity=command.stock_quantity,
        )
        current_domain.repository_for(Product).add(product)
        return str(variant.id)

    @handle(UpdateProductPrice)
    def update_price(self, command):
        product = self._owned_product(command)
        product.change_price(command.price)
        current_domain.repository_for(Product).add(product)

    @handle(RestockProduct)
    def restock(self, command):
        product = self._owned_product(command)
        product.replenish(command.quantity, variant_id=command.variant_id)
        current_domain.repository_for(Product).add(product)

    @handle(ChangeListingStatus)
    def change_status(self, command):
        product = self._owned_product(command)
        product.change_status(command.status, variant_id=command.variant_id)
        current_domain.repository_for(Product).add(product)
