"""PayPal provider strategy (simulated).

The buyer approves the payment on PayPal first, so authorize needs the
PayPal payment id and uses it as the external transaction id. Webhooks
follow PayPal's `event_type`/`resource` envelope.
"""

from decimal import Decimal
from uuid import uuid4

from commerce.gateway.port import (
    ChargeRequest,
    ChargeResult,
    PaymentProvider,
    ProviderCheck,
    ProviderState,
    RefundResult,
    WebhookEvent,
    WebhookKind,
)
from commerce.gateway.signing import verify

_EVENT_KINDS = {
    "PAYMENT.CAPTURE.COMPLETED": WebhookKind.CAPTURED,
    "PAYMENT.CAPTURE.DENIED": WebhookKind.DECLINED,
    "PAYMENT.CAPTURE.REFUNDED": WebhookKind.REFUNDED,
}


class PaypalProvider(PaymentProvider):
    name = "paypal"

    def __init__(self, webhook_secret: str) -> None:
        self.webhook_secret = webhook_secret

    def authorize(self, request: ChargeRequest) -> ChargeResult:
        if not request.paypal_payment_id:
            return ChargeResult(
                success=False,
                provider_status="payer_action_required",
                failure_reason="PayPal payment id is required",
            )
        return ChargeResult(
            success=True,
            external_transaction_id=request.paypal_payment_id,
            provider_status="COMPLETED",
            provider_response="PayPal payment processed successfully",
        )

    def refund(self, external_transaction_id: str, amount: Decimal, currency: str, reason: str) -> RefundResult:
        if not external_transaction_id:
            return RefundResult(success=False, failure_reason="No capture to refund")
        return RefundResult(success=True, external_refund_id=f"RF{uuid4().hex[:16].upper()}", provider_status="COMPLETED")

    def validate(self, transaction_id: str, external_transaction_id: str | None) -> ProviderCheck:
        if not external_transaction_id:
            return ProviderCheck(state=ProviderState.FAILED, detail="Unknown PayPal capture")
        return ProviderCheck(state=ProviderState.CAPTURED, external_transaction_id=external_transaction_id)

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        return verify(payload, signature, self.webhook_secret)

    def event_from(self, data: dict) -> WebhookEvent:
        resource = data.get("resource", {})
        amount = resource.get("amount", {}).get("value")
        kind = _EVENT_KINDS.get(data.get("event_type"), WebhookKind.UNSUPPORTED)
        is_refund = kind == WebhookKind.REFUNDED

        return WebhookEvent(
            kind=kind,
            transaction_id=resource.get("custom_id"),
            external_transaction_id=resource.get("capture_id") if is_refund else resource.get("id"),
            external_refund_id=resource.get("id") if is_refund else None,
            amount=Decimal(str(amount)) if amount is not None else None,
            reason=resource.get("note_to_payer") or resource.get("status_details", {}).get("reason"),
            raw_type=data.get("event_type"),
            payload=data,
        )
