"""Read side of the cart: priced snapshots, checkout validation and summaries.

None of these functions raise for a missing cart or a vanished product;
they report what they find so the caller can show it.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.pricing import shipping_strategy, tax_strategy
from commerce.money import ZERO, line_total, money_sum
from commerce.stock.ledger import listing_problem, load_product

OUT_OF_STOCK_SUMMARY = "Some items in your cart are out of stock or have limited availability."
EMPTY_CART = "Your cart is empty"
EMPTY_CART_SUMMARY = "Your cart is empty."


@dataclass
class CartLineView:
    line_id: str
    product_id: str
    variant_id: str | None
    quantity: int
    product_name: str | None = None
    sku: str | None = None
    variant_description: str | None = None
    vendor_id: str | None = None
    unit_price: Decimal = ZERO
    line_total: Decimal = ZERO
    weight_kg: float | None = None
    available_stock: int = 0
    tracks_quantity: bool = True
    problem: str | None = None

    @property
    def is_available(self) -> bool:
        return self.problem is None

    @property
    def in_stock(self) -> bool:
        return not self.tracks_quantity or self.available_stock >= self.quantity


@dataclass
class CartSnapshot:
    owner_id: str
    lines: list[CartLineView] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return money_sum(line.line_total for line in self.lines if line.product_name is not None)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "lines": [
                {**asdict(line), "is_available": line.is_available, "in_stock": line.in_stock} for line in self.lines
            ],
            "subtotal": self.subtotal,
            "item_count": self.item_count,
        }


@dataclass
class LineCheck:
    line_id: str
    product_id: str
    variant_id: str | None
    is_valid: bool
    reason: str | None
    available_stock: int
    requested_quantity: int


@dataclass
class CartValidation:
    is_valid: bool
    lines: list[LineCheck] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


@dataclass
class CartSummary:
    subtotal: Decimal
    estimated_shipping: Decimal
    estimated_tax: Decimal
    estimated_total: Decimal
    item_count: int
    has_out_of_stock: bool
    messages: list[str] = field(default_factory=list)


def load_cart(owner_id) -> Cart | None:
    try:
        return current_domain.repository_for(Cart).get(str(owner_id))
    except ObjectNotFoundError:
        return None


def _line_view(line) -> CartLineView:
    view = CartLineView(
        line_id=str(line.id),
        product_id=str(line.product_id),
        variant_id=str(line.variant_id) if line.variant_id else None,
        quantity=line.quantity,
    )
    product = load_product(line.product_id)
    view.problem = listing_problem(product, line.variant_id)
    if product is None:
        return view

    variant = product.variant(line.variant_id)
    view.product_name = product.name
    view.sku = variant.sku if variant is not None and variant.sku else product.sku
    view.variant_description = variant.description if variant is not None else None
    view.vendor_id = str(product.vendor_id)
    view.unit_price = product.unit_price(variant)
    view.line_total = line_total(view.unit_price, line.quantity)
    view.weight_kg = product.weight_kg
    view.available_stock = product.available_stock(variant)
    view.tracks_quantity = bool(product.track_quantity)
    return view


def build_snapshot(cart: Cart | None, owner_id=None) -> CartSnapshot:
    """Price every line of `cart` against the live catalog mirror."""
    if cart is None:
        return CartSnapshot(owner_id=str(owner_id))
    return CartSnapshot(owner_id=str(cart.owner_id), lines=[_line_view(line) for line in cart.lines])


def cart_snapshot(owner_id) -> CartSnapshot:
    return build_snapshot(load_cart(owner_id), owner_id=owner_id)


def item_count(owner_id) -> int:
    cart = load_cart(owner_id)
    return cart.item_count if cart is not None else 0


def _check(view: CartLineView) -> LineCheck:
    reason = view.problem
    if reason is None and not view.in_stock:
        reason = f"Only {view.available_stock} items available"
    return LineCheck(
        line_id=view.line_id,
        product_id=view.product_id,
        variant_id=view.variant_id,
        is_valid=reason is None,
        reason=reason,
        available_stock=view.available_stock,
        requested_quantity=view.quantity,
    )


def validate_cart(owner_id) -> CartValidation:
    """Advisory pre-checkout report; order creation re-checks authoritatively."""
    snapshot = cart_snapshot(owner_id)
    if not snapshot.lines:
        return CartValidation(is_valid=False, messages=[EMPTY_CART])

    checks = [_check(view) for view in snapshot.lines]
    invalid = [check for check in checks if not check.is_valid]
    messages = [f"{len(invalid)} item(s) in your cart need attention"] if invalid else []
    return CartValidation(is_valid=not invalid, lines=checks, messages=messages)


def _summary_messages(snapshot: CartSnapshot, has_out_of_stock: bool) -> list[str]:
    messages = []
    if has_out_of_stock:
        messages.append(OUT_OF_STOCK_SUMMARY)
    if not snapshot.lines:
        messages.append(EMPTY_CART_SUMMARY)
    return messages


def cart_summary(owner_id, shipping_method: str | None = None) -> CartSummary:
    snapshot = cart_snapshot(owner_id)
    priced = [view for view in snapshot.lines if view.product_name is not None]

    subtotal = snapshot.subtotal
    shipping = shipping_strategy(method=shipping_method).estimate([(v.weight_kg, v.quantity) for v in priced])
    tax = tax_strategy().estimate(subtotal)
    has_out_of_stock = any(not _check(view).is_valid for view in snapshot.lines)

    return CartSummary(
        subtotal=subtotal,
        estimated_shipping=shipping,
        estimated_tax=tax,
        estimated_total=money_sum([subtotal, shipping, tax]),
        item_count=snapshot.item_count,
        has_out_of_stock=has_out_of_stock,
        messages=_summary_messages(snapshot, has_out_of_stock),
    )
