"""Refunds: the RefundPayment command and the provider call shared with cancellation."""

import structlog
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.access import Actor
from commerce.domain import commerce
from commerce.errors import ProviderError
from commerce.gateway import call_with_timeout, get_provider
from commerce.money import to_money
from commerce.payment.payment import Payment, PaymentRefund

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    reason = Text()
    actor_id = Identifier(required=True)
    actor_role = String(max_length=20)


def issue_refund(payment: Payment, amount, reason=None) -> PaymentRefund:
    """Refund through the payment's provider and record the outcome on `payment`.

    Business checks run before the provider is contacted. A provider refusal
    or error is recorded as a failed refund and does not change balances.
    """
    amount = to_money(amount)
    payment.assert_refundable(amount)

    provider = get_provider(payment.provider)
    try:
        result = call_with_timeout(
            provider, "refund", payment.external_transaction_id, amount, payment.currency, reason or ""
        )
    except ProviderError as exc:
        logger.warning("Refund call failed", payment_id=str(payment.id), provider=payment.provider, error=str(exc))
        return payment.record_failed_refund(amount, reason=reason, failure_reason=exc.reason)

    if not result.success:
        logger.warning(
            "Refund declined by provider",
            payment_id=str(payment.id),
            provider=payment.provider,
            reason=result.failure_reason,
        )
        return payment.record_failed_refund(amount, reason=reason, failure_reason=result.failure_reason)

    refund = payment.record_refund(amount, reason=reason, external_refund_id=result.external_refund_id)
    logger.info(
        "Payment refunded",
        payment_id=str(payment.id),
        amount=str(amount),
        refunded_amount=payment.refunded_amount,
        status=payment.status,
    )
    return refund


@commerce.command_handler(part_of=Payment)
class RefundPaymentHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        actor = Actor.from_command(command)
        actor.require_privileged("Only an administrator can refund payments")

        issue_refund(payment, command.amount, reason=command.reason)
        repo.add(payment)
        return str(payment.id)
