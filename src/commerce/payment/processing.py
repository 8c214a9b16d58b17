"""Payment processing for an order.

The payment record, the order confirmation and its tracking entry are
written in one Unit of Work. A provider decline or error fails the payment
and leaves the order as it was. A provider timeout leaves the payment in
Processing until ValidatePayment reconciles it.
"""

import structlog
from protean.exceptions import InvalidOperationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.domain import commerce
from commerce.errors import ProviderError, ProviderTimeout
from commerce.gateway import DEFAULT_PROVIDER, call_with_timeout, get_provider
from commerce.gateway.port import ChargeRequest
from commerce.money import to_money
from commerce.order.order import Order, OrderStatus
from commerce.payment.payment import Payment
from commerce.payment.queries import payment_for_order

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Payment")
class ProcessPayment:
    order_id = Identifier(required=True)
    provider = String(max_length=50, default=DEFAULT_PROVIDER)
    method = String(max_length=50)
    currency = String(max_length=3)
    card_token = String(max_length=255)
    paypal_payment_id = String(max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def settle_capture(payment: Payment, order: Order, external_transaction_id=None, provider_response=None) -> None:
    """Apply a capture to the payment and confirm its order."""
    payment.complete(external_transaction_id=external_transaction_id, provider_response=provider_response)
    if order is not None and order.status == OrderStatus.PENDING.value:
        order.confirm_payment()
    elif order is not None:
        logger.warning(
            "Captured payment for an order that is no longer pending",
            payment_id=str(payment.id),
            order_id=str(order.id),
            order_status=order.status,
        )


@commerce.command_handler(part_of=Payment)
class ProcessPaymentHandler:
    @handle(ProcessPayment)
    def process_payment(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        actor = Actor.from_command(command)
        actor.require(actor.actor_id == str(order.customer_id), "Only the customer can pay for this order")

        if payment_for_order(order.id) is not None:
            raise InvalidOperationError(f"Order {order.order_number} already has a payment")
        if order.status != OrderStatus.PENDING.value:
            raise InvalidOperationError(f"Order in {order.status} state cannot be paid")

        provider = get_provider(command.provider)
        payment = Payment.start(
            order_id=order.id,
            customer_id=order.customer_id,
            amount=order.total_amount,
            provider=provider.name,
            method=command.method,
            currency=command.currency or order.currency,
        )
        request = ChargeRequest(
            transaction_id=payment.transaction_id,
            amount=to_money(payment.amount),
            currency=payment.currency,
            method=command.method,
            card_token=command.card_token,
            paypal_payment_id=command.paypal_payment_id,
            customer_id=str(order.customer_id),
        )

        try:
            result = call_with_timeout(provider, "authorize", request)
        except ProviderTimeout as exc:
            logger.warning("Payment left processing after timeout", transaction_id=payment.transaction_id, error=str(exc))
            result = None
        except ProviderError as exc:
            logger.warning("Payment provider error", transaction_id=payment.transaction_id, error=str(exc))
            payment.fail(exc.reason)
            result = None

        if result is not None and result.success:
            settle_capture(payment, order, result.external_transaction_id, result.provider_response)
            order_repo.add(order)
        elif result is not None:
            payment.fail(result.failure_reason or "Payment declined")

        current_domain.repository_for(Payment).add(payment)
        logger.info(
            "Payment processed",
            payment_id=str(payment.id),
            order_id=str(order.id),
            provider=payment.provider,
            status=payment.status,
        )
        return str(payment.id)
