"""Read and check helpers over the Product mirror.

Carts use these for the advisory stock check; order creation repeats the
check authoritatively through `Product.withdraw` inside its own Unit of
Work.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from commerce.errors import InsufficientStock
from commerce.stock.product import Product, ProductVariant

PRODUCT_UNAVAILABLE = "Product is no longer available"
VARIANT_UNAVAILABLE = "Product variant is no longer available"


@dataclass(frozen=True)
class Listing:
    """A product resolved together with the optional variant a line points at."""

    product: Product
    variant: ProductVariant | None

    @property
    def unit_price(self):
        return self.product.unit_price(self.variant)

    @property
    def available_stock(self) -> int:
        return self.product.available_stock(self.variant)

    @property
    def tracks_quantity(self) -> bool:
        return bool(self.product.track_quantity)


def load_product(product_id) -> Product | None:
    """Return the product, or None when the catalog has no such listing."""
    try:
        return current_domain.repository_for(Product).get(str(product_id))
    except ObjectNotFoundError:
        return None


def listing_problem(product: Product | None, variant_id=None) -> str | None:
    """Why a (product, variant) pair cannot be sold right now, or None if it can."""
    if product is None or not product.is_active:
        return PRODUCT_UNAVAILABLE
    if variant_id:
        variant = product.variant(variant_id)
        if variant is None or not variant.is_active:
            return VARIANT_UNAVAILABLE
    return None


def resolve_listing(product_id, variant_id=None) -> Listing:
    """Load an active product and variant, raising ValidationError otherwise."""
    product = load_product(product_id)
    problem = listing_problem(product, variant_id)
    if problem == PRODUCT_UNAVAILABLE:
        raise ValidationError({"product_id": [problem]})
    if problem == VARIANT_UNAVAILABLE:
        raise ValidationError({"variant_id": [problem]})
    return Listing(product=product, variant=product.variant(variant_id))


def ensure_available(listing: Listing, requested: int) -> None:
    """Raise InsufficientStock when a tracked listing cannot cover `requested`."""
    if not listing.tracks_quantity:
        return
    available = listing.available_stock
    if available < requested:
        raise InsufficientStock(
            available=available,
            requested=requested,
            product_id=str(listing.product.id),
            variant_id=str(listing.variant.id) if listing.variant is not None else None,
        )
