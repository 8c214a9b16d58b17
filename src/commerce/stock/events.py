"""Domain events for the Product stock mirror."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductRegistered:
    """A catalog product was mirrored into the commerce core."""

    __version__ = 1

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    sku = String(required=True)
    price = Float(required=True)
    stock_quantity = Integer(required=True)
    registered_at = DateTime(required=True)


@commerce.event(part_of="Product")
class ProductPriceChanged:
    """The catalog changed a product's price."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)


@commerce.event(part_of="Product")
class StockWithdrawn:
    """Stock was taken out by an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@commerce.event(part_of="Product")
class StockReplenished:
    """Stock was put back by a cancellation or a restock."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    remaining = Integer(required=True)
