"""Cart aggregate: one mutable basket of lines per owner.

The owner id is the cart's identity, so an owner can never hold two carts.
Within a cart there is at most one line per (product, variant); adding the
same pair again grows the existing line.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer

from commerce.cart.events import (
    CartCleared,
    CartLineAdded,
    CartLineRemoved,
    CartLinesConsumed,
    CartLineUpdated,
    CartsMerged,
)
from commerce.domain import commerce
from commerce.errors import ConsistencyViolation


def _key(product_id, variant_id):
    return (str(product_id), str(variant_id) if variant_id else None)


@commerce.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()
    updated_at = DateTime()

    @property
    def key(self):
        return _key(self.product_id, self.variant_id)


@commerce.aggregate
class Cart:
    owner_id = Identifier(identifier=True)
    lines = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product_variant(self):
        keys = [line.key for line in self.lines]
        if len(keys) != len(set(keys)):
            raise ConsistencyViolation(f"Cart {self.owner_id} holds duplicate lines")

    @classmethod
    def open(cls, owner_id):
        now = datetime.now(UTC)
        return cls(owner_id=owner_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def line(self, line_id):
        return next((line for line in self.lines if str(line.id) == str(line_id)), None)

    def line_for(self, product_id, variant_id=None):
        key = _key(product_id, variant_id)
        return next((line for line in self.lines if line.key == key), None)

    def require_line(self, line_id):
        line = self.line(line_id)
        if line is None:
            raise ObjectNotFoundError(f"Cart line {line_id} not found")
        return line

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def quantity_after_add(self, product_id, variant_id, quantity) -> int:
        existing = self.line_for(product_id, variant_id)
        return quantity + (existing.quantity if existing else 0)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_product(self, product_id, variant_id, quantity):
        """Add `quantity` of a product; an existing (product, variant) line is summed."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        line = self.line_for(product_id, variant_id)
        if line is not None:
            line.quantity += quantity
            line.updated_at = now
        else:
            line = CartLine(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                added_at=now,
                updated_at=now,
            )
            self.add_lines(line)
        self.updated_at = now

        self.raise_(
            CartLineAdded(
                owner_id=str(self.owner_id),
                line_id=str(line.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
            )
        )
        return line

    def update_line(self, line_id, quantity, variant_id=None):
        """Set a line's quantity (and optionally move it to another variant).

        A quantity of zero or less removes the line. Moving onto a variant that
        already has its own line folds the two lines together.
        """
        line = self.require_line(line_id)
        if quantity <= 0:
            self.discard_line(line_id)
            return None

        now = datetime.now(UTC)
        previous = line.quantity
        target_variant = variant_id if variant_id else line.variant_id
        sibling = self.line_for(line.product_id, target_variant)

        if sibling is not None and str(sibling.id) != str(line.id):
            sibling.quantity += quantity
            sibling.updated_at = now
            self.remove_lines(line)
            line = sibling
        else:
            line.variant_id = target_variant
            line.quantity = quantity
            line.updated_at = now
        self.updated_at = now

        self.raise_(
            CartLineUpdated(
                owner_id=str(self.owner_id),
                line_id=str(line.id),
                variant_id=str(line.variant_id) if line.variant_id else None,
                previous_quantity=previous,
                new_quantity=line.quantity,
            )
        )
        return line

    def discard_line(self, line_id) -> bool:
        line = self.line(line_id)
        if line is None:
            return False

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineRemoved(
                owner_id=str(self.owner_id),
                line_id=str(line.id),
                product_id=str(line.product_id),
            )
        )
        return True

    def discard_lines(self, line_ids) -> bool:
        removed = [self.discard_line(line_id) for line_id in line_ids]
        return any(removed)

    def clear(self) -> bool:
        lines = list(self.lines)
        for line in lines:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(owner_id=str(self.owner_id), removed_lines=len(lines)))
        return True

    def absorb(self, source: "Cart"):
        """Fold every line of `source` into this cart and leave `source` empty.

        Lines whose (product, variant) already exists here are summed;
        the rest are re-created here with their quantity and timestamps.
        """
        if str(source.owner_id) == str(self.owner_id):
            raise ValidationError({"owner_id": ["Cannot merge a cart into itself"]})

        now = datetime.now(UTC)
        summed = moved = 0
        for line in list(source.lines):
            existing = self.line_for(line.product_id, line.variant_id)
            if existing is not None:
                existing.quantity += line.quantity
                existing.updated_at = now
                summed += 1
            else:
                self.add_lines(
                    CartLine(
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        added_at=line.added_at or now,
                        updated_at=now,
                    )
                )
                moved += 1
            source.remove_lines(line)

        source.updated_at = now
        self.updated_at = now
        self.raise_(
            CartsMerged(
                from_owner_id=str(source.owner_id),
                to_owner_id=str(self.owner_id),
                summed_lines=summed,
                moved_lines=moved,
            )
        )
        return summed, moved

    def consume(self, line_ids, order_id):
        """Remove the lines that became part of an order."""
        for line_id in line_ids:
            line = self.line(line_id)
            if line is not None:
                self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartLinesConsumed(owner_id=str(self.owner_id), order_id=str(order_id), line_count=len(line_ids)))
