"""Reconciliation: re-confirm a payment with its provider and fix our record on mismatch."""

import structlog
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.domain import commerce
from commerce.errors import ProviderError
from commerce.gateway import call_with_timeout, get_provider
from commerce.gateway.port import ProviderState
from commerce.order.order import Order
from commerce.order.queries import load_order
from commerce.payment.payment import Payment
from commerce.payment.processing import settle_capture
from commerce.payment.state import PaymentStatus

logger = structlog.get_logger(__name__)

VALIDATION_FAILED = "Payment validation failed"


@commerce.command(part_of="Payment")
class ValidatePayment:
    payment_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


@commerce.command_handler(part_of=Payment)
class ValidatePaymentHandler:
    @handle(ValidatePayment)
    def validate_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        actor = Actor.from_command(command)
        actor.require(actor.actor_id == str(payment.customer_id), "Not allowed to validate this payment")

        status = PaymentStatus(payment.status)
        if status == PaymentStatus.FAILED:
            return False

        provider = get_provider(payment.provider)
        try:
            check = call_with_timeout(provider, "validate", payment.transaction_id, payment.external_transaction_id)
        except ProviderError as exc:
            logger.warning("Provider unreachable during validation", payment_id=str(payment.id), error=str(exc))
            return False

        if check.state == ProviderState.PENDING:
            return False

        if check.state == ProviderState.CAPTURED:
            if status == PaymentStatus.PROCESSING:
                order = load_order(payment.order_id)
                settle_capture(payment, order, check.external_transaction_id, check.detail)
                repo.add(payment)
                if order is not None:
                    current_domain.repository_for(Order).add(order)
                logger.info("Processing payment reconciled as captured", payment_id=str(payment.id))
            return True

        if status in (PaymentStatus.PROCESSING, PaymentStatus.COMPLETED):
            payment.invalidate(VALIDATION_FAILED)
            repo.add(payment)
            logger.warning(
                "Payment failed reconciliation",
                payment_id=str(payment.id),
                previous_status=status.value,
                detail=check.detail,
            )
            return False

        # Refunded states: the provider no longer reports a live capture.
        logger.info("Refunded payment reported as not captured", payment_id=str(payment.id), status=status.value)
        return True
