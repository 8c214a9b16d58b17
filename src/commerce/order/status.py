"""Order lifecycle updates by vendors and administrators: status and tracking."""

import structlog
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor, Role
from commerce.domain import commerce
from commerce.order.cancellation import cancel_with_settlement
from commerce.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = Text()
    location = String(max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command(part_of="Order")
class UpdateOrderTracking:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=100)
    location = String(max_length=255)
    note = Text()
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def _require_fulfiller(actor: Actor, order: Order) -> None:
    is_vendor = actor.role == Role.VENDOR.value and actor.actor_id in order.vendor_ids
    actor.require(is_vendor, "Only the order's vendors or an administrator can update it")


@commerce.command_handler(part_of=Order)
class OrderProgressHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        try:
            target = OrderStatus(command.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {command.status}"]}) from None

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        actor = Actor.from_command(command)
        _require_fulfiller(actor, order)

        previous = order.status
        if target == OrderStatus.CANCELLED:
            cancel_with_settlement(order, command.note or f"Cancelled by {actor.role}", actor)
        else:
            order.transition_to(target, actor=actor, note=command.note, location=command.location)
        repo.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=target.value,
            actor_id=actor.actor_id,
        )
        return str(order.id)

    @handle(UpdateOrderTracking)
    def update_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        actor = Actor.from_command(command)
        _require_fulfiller(actor, order)

        order.update_tracking(
            actor=actor,
            tracking_number=command.tracking_number,
            location=command.location,
            note=command.note,
        )
        repo.add(order)
        return True
