"""Product aggregate: the commerce core's mirror of catalog listings.

The catalog owns product data. This aggregate keeps the fields the
transaction core needs (lifecycle status, price, stock, vendor) and is
the single place where tracked stock is withdrawn and restored.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from commerce.domain import commerce
from commerce.errors import ConsistencyViolation, InsufficientStock
from commerce.money import as_float, to_money
from commerce.stock.events import ProductPriceChanged, ProductRegistered, StockReplenished, StockWithdrawn


class ListingStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@commerce.entity(part_of="Product")
class ProductVariant:
    name = String(required=True, max_length=100)
    value = String(required=True, max_length=100)
    sku = String(max_length=100)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer()  # None means the variant draws on product stock
    status = String(choices=ListingStatus, default=ListingStatus.ACTIVE.value)

    @property
    def description(self) -> str:
        return f"{self.name}: {self.value}"

    @property
    def is_active(self) -> bool:
        return self.status == ListingStatus.ACTIVE.value


@commerce.aggregate
class Product:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0)
    track_quantity = Boolean(default=True)
    weight_kg = Float(min_value=0.0)
    status = String(choices=ListingStatus, default=ListingStatus.ACTIVE.value)
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tracked_stock_is_never_negative(self):
        if self.track_quantity and (self.stock_quantity or 0) < 0:
            raise ConsistencyViolation(f"Product {self.id} stock went negative ({self.stock_quantity})")

    @classmethod
    def register(
        cls,
        product_id,
        vendor_id,
        name,
        sku,
        price,
        stock_quantity=0,
        track_quantity=True,
        weight_kg=None,
    ):
        now = datetime.now(UTC)
        product = cls(
            id=product_id,
            vendor_id=vendor_id,
            name=name,
            sku=sku,
            price=as_float(price),
            stock_quantity=stock_quantity,
            track_quantity=track_quantity,
            weight_kg=weight_kg,
            status=ListingStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                vendor_id=str(vendor_id),
                sku=sku,
                price=product.price,
                stock_quantity=stock_quantity,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status == ListingStatus.ACTIVE.value

    def variant(self, variant_id):
        if not variant_id:
            return None
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def unit_price(self, variant=None):
        price = to_money(self.price)
        if variant is not None:
            price += to_money(variant.price_adjustment or 0)
        return to_money(price)

    def available_stock(self, variant=None) -> int:
        if variant is not None and variant.stock_quantity is not None:
            return variant.stock_quantity
        return self.stock_quantity or 0

    # -------------------------------------------------------------------
    # Catalog sync
    # -------------------------------------------------------------------
    def add_variant(self, name, value, sku=None, price_adjustment=0.0, stock_quantity=None):
        variant = ProductVariant(
            name=name,
            value=value,
            sku=sku,
            price_adjustment=as_float(price_adjustment),
            stock_quantity=stock_quantity,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    def change_price(self, new_price):
        previous = self.price
        self.price = as_float(new_price)
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductPriceChanged(product_id=str(self.id), previous_price=previous, new_price=self.price))

    def change_status(self, status: str, variant_id=None):
        if variant_id:
            variant = self.variant(variant_id)
            if variant is None:
                raise ValidationError({"variant_id": ["Variant does not belong to this product"]})
            variant.status = status
        else:
            self.status = status
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def withdraw(self, quantity: int, variant_id=None):
        """Take `quantity` units out of stock, failing if a tracked level would go negative."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        variant = self.variant(variant_id)
        if variant_id and variant is None:
            raise ValidationError({"variant_id": ["Product variant is no longer available"]})

        if self.track_quantity:
            levels = [self.stock_quantity or 0]
            if variant is not None and variant.stock_quantity is not None:
                levels.append(variant.stock_quantity)
            available = min(levels)
            if available < quantity:
                raise InsufficientStock(
                    available=available,
                    requested=quantity,
                    product_id=str(self.id),
                    variant_id=str(variant_id) if variant_id else None,
                )

        self.stock_quantity = (self.stock_quantity or 0) - quantity
        if variant is not None and variant.stock_quantity is not None:
            variant.stock_quantity -= quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockWithdrawn(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=self.available_stock(variant),
            )
        )

    def replenish(self, quantity: int, variant_id=None):
        """Put `quantity` units back, e.g. when an order is cancelled."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        variant = self.variant(variant_id)
        self.stock_quantity = (self.stock_quantity or 0) + quantity
        if variant is not None and variant.stock_quantity is not None:
            variant.stock_quantity += quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReplenished(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=self.available_stock(variant),
            )
        )
