"""Cart merging, typically when a guest signs in and their basket joins the account's."""

import structlog
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.cart.cart import Cart
from commerce.cart.queries import load_cart
from commerce.domain import commerce

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class MergeCarts:
    from_owner_id = Identifier(required=True)
    to_owner_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command_handler(part_of=Cart)
class MergeCartsHandler:
    @handle(MergeCarts)
    def merge(self, command):
        actor = Actor.from_command(command)
        actor.require(actor.actor_id == str(command.to_owner_id), "Only the receiving owner can merge carts")
        if str(command.from_owner_id) == str(command.to_owner_id):
            raise ValidationError({"to_owner_id": ["Cannot merge a cart into itself"]})

        source = load_cart(command.from_owner_id)
        if source is None or not source.lines:
            return True

        target = load_cart(command.to_owner_id) or Cart.open(command.to_owner_id)
        summed, moved = target.absorb(source)

        # Both carts are written in the same unit of work: all lines move or none do.
        repo = current_domain.repository_for(Cart)
        repo.add(target)
        repo.add(source)

        logger.info(
            "Carts merged",
            from_owner_id=str(command.from_owner_id),
            to_owner_id=str(command.to_owner_id),
            summed_lines=summed,
            moved_lines=moved,
        )
        return True
