"""Domain events for the Cart aggregate."""

from protean.fields import Identifier, Integer

from commerce.domain import commerce


@commerce.event(part_of="Cart")
class CartLineAdded:
    """A product was put in the cart, or its existing line grew."""

    __version__ = 1

    owner_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)


@commerce.event(part_of="Cart")
class CartLineUpdated:
    """A line's quantity or variant was changed."""

    __version__ = 1

    owner_id = Identifier(required=True)
    line_id = Identifier(required=True)
    variant_id = Identifier()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="Cart")
class CartLineRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    owner_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)


@commerce.event(part_of="Cart")
class CartCleared:
    """Every line was removed from the cart."""

    __version__ = 1

    owner_id = Identifier(required=True)
    removed_lines = Integer(required=True)


@commerce.event(part_of="Cart")
class CartsMerged:
    """Another owner's cart was folded into this one."""

    __version__ = 1

    from_owner_id = Identifier(required=True)
    to_owner_id = Identifier(required=True)
    summed_lines = Integer(required=True)
    moved_lines = Integer(required=True)


@commerce.event(part_of="Cart")
class CartLinesConsumed:
    """Lines were turned into an order and left the cart."""

    __version__ = 1

    owner_id = Identifier(required=True)
    order_id = Identifier(required=True)
    line_count = Integer(required=True)
