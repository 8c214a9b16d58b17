"""Order cancellation with its payment and stock side effects.

A captured payment is refunded for whatever is still unrefunded and the
withdrawn stock is put back, all in the cancellation's Unit of Work. If
the provider refuses the refund the order is not cancelled.
"""

import structlog
from protean.exceptions import InvalidOperationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.domain import commerce
from commerce.money import to_money
from commerce.order.order import Order
from commerce.payment.payment import Payment, PaymentStatus
from commerce.payment.queries import payment_for_order
from commerce.payment.refund import issue_refund
from commerce.stock.ledger import load_product
from commerce.stock.product import Product

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = Text(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def _settle_payment(order: Order, reason: str) -> Payment | None:
    payment = payment_for_order(order.id)
    if payment is None:
        return None

    status = PaymentStatus(payment.status)
    if status == PaymentStatus.PROCESSING:
        raise InvalidOperationError(
            f"Payment {payment.transaction_id} is still processing; validate it before cancelling the order"
        )
    if status not in (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED):
        return None

    remaining = payment.remaining_amount
    if remaining <= to_money(0):
        return None

    refund = issue_refund(payment, remaining, reason=f"Order cancelled: {reason}")
    if not refund.succeeded:
        raise InvalidOperationError(
            f"Refund of {remaining} for order {order.order_number} failed: {refund.failure_reason}"
        )
    return payment


def _restore_stock(order: Order) -> None:
    repo = current_domain.repository_for(Product)
    products = {}
    for item in order.items:
        product_id = str(item.product_id)
        product = products.get(product_id) or load_product(product_id)
        if product is None:
            logger.warning("Cannot restore stock for missing product", order_id=str(order.id), product_id=product_id)
            continue
        product.replenish(item.quantity, variant_id=item.variant_id)
        products[product_id] = product
    for product in products.values():
        repo.add(product)


def cancel_with_settlement(order: Order, reason: str, actor: Actor) -> Payment | None:
    """Cancel `order`, refund its captured payment and put its stock back.

    Shared by CancelOrder and a status update to Cancelled. The caller saves
    the order; the refunded payment and replenished products are saved here.
    """
    order.cancel(reason, actor=actor)

    payment = _settle_payment(order, reason)
    if payment is not None:
        current_domain.repository_for(Payment).add(payment)

    _restore_stock(order)
    return payment


@commerce.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        actor = Actor.from_command(command)
        actor.require(actor.actor_id == str(order.customer_id), "Only the customer can cancel this order")

        payment = cancel_with_settlement(order, command.reason, actor)
        repo.add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            refunded=payment is not None,
        )
        return True
