"""Order aggregate: the immutable record of what a customer bought.

Line items are snapshots taken at creation (name, SKU, unit price) and
never change afterwards, so the total always equals the sum of the items
regardless of later catalog edits. After creation an order changes only
through status transitions and tracking updates, each of which appends a
TrackingEvent.

State machine:
    Pending -> Confirmed -> Processing -> Shipped -> Delivered
    Pending | Confirmed | Processing -> Cancelled
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from commerce.access import SYSTEM_ACTOR, Actor
from commerce.domain import commerce
from commerce.errors import ConsistencyViolation, InvalidTransition
from commerce.money import as_float, line_total, money_sum, to_money
from commerce.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged, OrderTrackingUpdated


class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}


@commerce.value_object(part_of="Order")
class ShippingAddress:
    """Address text captured from the address book at checkout."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@commerce.entity(part_of="Order")
class OrderItem:
    """Snapshot of one purchased product (and variant) at order time."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    vendor_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    variant_description = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    total_price = Float(required=True, min_value=0.0)


@commerce.entity(part_of="Order")
class TrackingEvent:
    """Append-only entry in the order's tracking log."""

    status = String(required=True, max_length=20)
    occurred_at = DateTime(required=True)
    note = Text()
    location = String(max_length=255)
    tracking_number = String(max_length=100)
    actor_id = Identifier()
    actor_role = String(max_length=20)


@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    tracking_events = HasMany(TrackingEvent)
    total_amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    shipping_address = ValueObject(ShippingAddress)
    billing_address = ValueObject(ShippingAddress)
    notes = Text()
    tracking_number = String(max_length=100)
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        order_number,
        items_data,
        shipping_address,
        billing_address=None,
        notes=None,
        currency="USD",
        actor: Actor | None = None,
    ):
        """Create a Pending order from snapshotted line data.

        Args:
            items_data: dicts with product_id, variant_id, vendor_id,
                product_name, sku, variant_description, unit_price, quantity.
            shipping_address: dict with street, city, state, postal_code, country.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        items = [
            OrderItem(
                product_id=data["product_id"],
                variant_id=data.get("variant_id"),
                vendor_id=data["vendor_id"],
                product_name=data["product_name"],
                sku=data["sku"],
                variant_description=data.get("variant_description"),
                unit_price=as_float(data["unit_price"]),
                quantity=data["quantity"],
                total_price=as_float(line_total(data["unit_price"], data["quantity"])),
            )
            for data in items_data
        ]
        total = money_sum(item.total_price for item in items)

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            items=items,
            total_amount=as_float(total),
            currency=currency,
            shipping_address=ShippingAddress(**shipping_address),
            billing_address=ShippingAddress(**billing_address) if billing_address else None,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order._verify_total()
        order._track("Order created", actor=actor or Actor(actor_id=str(customer_id)), at=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                total_amount=order.total_amount,
                currency=currency,
                item_count=sum(item.quantity for item in items),
                vendor_ids=json.dumps(sorted(order.vendor_ids)),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def vendor_ids(self) -> set[str]:
        return {str(item.vendor_id) for item in self.items}

    @property
    def is_cancellable(self) -> bool:
        return OrderStatus(self.status) in CANCELLABLE_STATES

    def items_total(self):
        return money_sum(item.total_price for item in self.items)

    def timeline(self) -> list:
        return sorted(self.tracking_events, key=lambda event: event.occurred_at)

    def _verify_total(self):
        if to_money(self.total_amount) != self.items_total():
            raise ConsistencyViolation(
                f"Order {self.order_number} total {self.total_amount} does not match items {self.items_total()}"
            )

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus):
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target.value)

    def _track(self, note, actor: Actor, at=None, location=None, tracking_number=None):
        self.add_tracking_events(
            TrackingEvent(
                status=self.status,
                occurred_at=at or datetime.now(UTC),
                note=note,
                location=location,
                tracking_number=tracking_number,
                actor_id=actor.actor_id,
                actor_role=actor.role,
            )
        )

    def transition_to(self, target: OrderStatus, actor: Actor, note=None, location=None):
        """Move to `target` if the state machine allows it and log the move."""
        if target == OrderStatus.CANCELLED:
            raise InvalidOperationError("Cancelling goes through Order.cancel")
        self._assert_can_transition(target)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self._track(note or f"Status updated from {previous} to {target.value}", actor=actor, at=now, location=location)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous,
                new_status=target.value,
                actor_id=actor.actor_id,
                changed_at=now,
            )
        )

    def confirm_payment(self):
        """Payment captured: Pending -> Confirmed, recorded as a System action."""
        self.transition_to(OrderStatus.CONFIRMED, actor=SYSTEM_ACTOR, note="Payment completed successfully")

    def cancel(self, reason: str, actor: Actor):
        if not self.is_cancellable:
            raise InvalidOperationError(f"Order in {self.status} state cannot be cancelled")
        if not reason:
            raise ValidationError({"reason": ["A cancellation reason is required"]})

        previous = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now
        self._track(f"Order cancelled: {reason}", actor=actor, at=now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous,
                reason=reason,
                actor_id=actor.actor_id,
                cancelled_at=now,
            )
        )

    def update_tracking(self, actor: Actor, tracking_number=None, location=None, note=None):
        """Append a tracking entry without changing status."""
        now = datetime.now(UTC)
        if tracking_number:
            self.tracking_number = tracking_number
        self.updated_at = now
        self._track(
            note or "Tracking information updated",
            actor=actor,
            at=now,
            location=location,
            tracking_number=tracking_number or self.tracking_number,
        )

        self.raise_(
            OrderTrackingUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                tracking_number=self.tracking_number,
                location=location,
                updated_at=now,
            )
        )
