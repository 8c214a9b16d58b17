"""Provider webhook ingestion.

The signature is verified before anything is read or written. Parsed
events go through the same transitions as the synchronous paths, keyed by
our transaction id (or the provider's transaction id), and each delivery
ends in one of three logged outcomes:

- applied: the event changed the payment
- duplicate: the event was already applied (redelivery)
- rejected: the event contradicts the payment's state or names no payment
"""

from enum import Enum

import structlog
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.errors import InvalidWebhookSignature, MalformedWebhookPayload
from commerce.gateway import get_provider, known_providers
from commerce.gateway.port import WebhookEvent, WebhookKind
from commerce.order.order import Order
from commerce.order.queries import load_order
from commerce.payment.payment import Payment
from commerce.payment.processing import settle_capture
from commerce.payment.queries import payment_by_external_id, payment_by_transaction
from commerce.payment.state import PaymentStatus

logger = structlog.get_logger(__name__)


class WebhookOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


@commerce.command(part_of="Payment")
class HandleProviderWebhook:
    provider = String(required=True, max_length=50)
    raw_payload = Text(required=True)
    signature = String(max_length=512)


def _find_payment(event: WebhookEvent) -> Payment | None:
    return payment_by_transaction(event.transaction_id) or payment_by_external_id(event.external_transaction_id)


def _on_captured(payment: Payment, event: WebhookEvent) -> WebhookOutcome:
    status = PaymentStatus(payment.status)
    if status != PaymentStatus.PROCESSING:
        same_capture = event.external_transaction_id in (None, payment.external_transaction_id)
        if status != PaymentStatus.FAILED and same_capture:
            return WebhookOutcome.DUPLICATE
        return WebhookOutcome.REJECTED

    order = load_order(payment.order_id)
    settle_capture(payment, order, event.external_transaction_id, event.raw_type)
    if order is not None:
        current_domain.repository_for(Order).add(order)
    return WebhookOutcome.APPLIED


def _on_declined(payment: Payment, event: WebhookEvent) -> WebhookOutcome:
    status = PaymentStatus(payment.status)
    if status == PaymentStatus.FAILED:
        return WebhookOutcome.DUPLICATE
    if status != PaymentStatus.PROCESSING:
        return WebhookOutcome.REJECTED
    payment.fail(event.reason or "Declined by provider")
    return WebhookOutcome.APPLIED


def _on_refunded(payment: Payment, event: WebhookEvent) -> WebhookOutcome:
    # Refund idempotency is keyed on the provider refund id.
    if not event.external_refund_id:
        logger.warning("Refund webhook without provider refund id", payment_id=str(payment.id))
        return WebhookOutcome.REJECTED
    if payment.has_refund(event.external_refund_id):
        return WebhookOutcome.DUPLICATE
    if event.amount is None:
        return WebhookOutcome.REJECTED
    try:
        payment.record_refund(event.amount, reason=event.reason, external_refund_id=event.external_refund_id)
    except (InvalidOperationError, ValidationError) as exc:
        logger.warning("Refund webhook does not fit payment", payment_id=str(payment.id), error=str(exc))
        return WebhookOutcome.REJECTED
    return WebhookOutcome.APPLIED


_ROUTES = {
    WebhookKind.CAPTURED: _on_captured,
    WebhookKind.DECLINED: _on_declined,
    WebhookKind.REFUNDED: _on_refunded,
}


@commerce.command_handler(part_of=Payment)
class ProviderWebhookHandler:
    @handle(HandleProviderWebhook)
    def handle_webhook(self, command):
        if (command.provider or "").lower() not in known_providers():
            raise InvalidWebhookSignature(command.provider)
        provider = get_provider(command.provider)
        if not provider.verify_webhook_signature(command.raw_payload, command.signature or ""):
            logger.warning("Webhook signature rejected", provider=command.provider)
            raise InvalidWebhookSignature(command.provider)

        try:
            event = provider.parse_webhook(command.raw_payload)
        except MalformedWebhookPayload as exc:
            logger.warning(
                "Webhook processed", provider=provider.name, outcome=WebhookOutcome.REJECTED.value, error=exc.reason
            )
            return WebhookOutcome.REJECTED.value

        payment = _find_payment(event)
        route = _ROUTES.get(event.kind)

        if payment is None or route is None:
            outcome = WebhookOutcome.REJECTED
        else:
            outcome = route(payment, event)
            if outcome == WebhookOutcome.APPLIED:
                current_domain.repository_for(Payment).add(payment)

        log = logger.warning if outcome == WebhookOutcome.REJECTED else logger.info
        log(
            "Webhook processed",
            provider=provider.name,
            event_type=event.raw_type,
            outcome=outcome.value,
            payment_id=str(payment.id) if payment is not None else None,
            payment_status=payment.status if payment is not None else None,
        )
        return outcome.value
