"""Stripe provider strategy (simulated).

Mirrors Stripe's shapes closely enough for the state machine: PaymentIntent
ids (`pi_...`), refund ids (`re_...`), amounts in minor units in webhooks,
and the `t=...,v1=...` signature header over the timestamped raw body.
A real integration would replace the bodies of authorize/refund/validate
with stripe-python calls.
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
from commerce.gateway.signing import verify_stripe_header

_EVENT_KINDS = {
    "payment_intent.succeeded": WebhookKind.CAPTURED,
    "payment_intent.payment_failed": WebhookKind.DECLINED,
    "charge.refunded": WebhookKind.REFUNDED,
}


def _major_units(minor) -> Decimal | None:
    if minor is None:
        return None
    return (Decimal(int(minor)) / 100).quantize(Decimal("0.01"))


class StripeProvider(PaymentProvider):
    name = "stripe"

    def __init__(self, webhook_secret: str, api_key: str | None = None) -> None:
        self.webhook_secret = webhook_secret
        self.api_key = api_key

    def authorize(self, request: ChargeRequest) -> ChargeResult:
        if not request.card_token:
            return ChargeResult(
                success=False,
                provider_status="requires_payment_method",
                failure_reason="Card token is required for Stripe payments",
            )
        return ChargeResult(
            success=True,
            external_transaction_id=f"pi_{uuid4().hex[:24]}",
            provider_status="succeeded",
            provider_response="Stripe payment processed successfully",
        )

    def refund(self, external_transaction_id: str, amount: Decimal, currency: str, reason: str) -> RefundResult:
        if not external_transaction_id:
            return RefundResult(success=False, failure_reason="No PaymentIntent to refund")
        return RefundResult(success=True, external_refund_id=f"re_{uuid4().hex[:24]}", provider_status="succeeded")

    def validate(self, transaction_id: str, external_transaction_id: str | None) -> ProviderCheck:
        if not external_transaction_id:
            return ProviderCheck(state=ProviderState.FAILED, detail="Unknown PaymentIntent")
        return ProviderCheck(state=ProviderState.CAPTURED, external_transaction_id=external_transaction_id)

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        return verify_stripe_header(payload, signature, self.webhook_secret)

    def event_from(self, data: dict) -> WebhookEvent:
        obj = data.get("data", {}).get("object", {})
        metadata = obj.get("metadata", {})
        kind = _EVENT_KINDS.get(data.get("type"), WebhookKind.UNSUPPORTED)

        if kind == WebhookKind.REFUNDED:
            refund = obj.get("refund", {})
            return WebhookEvent(
                kind=kind,
                transaction_id=metadata.get("transaction_id"),
                external_transaction_id=obj.get("payment_intent"),
                external_refund_id=refund.get("id"),
                amount=_major_units(refund.get("amount")),
                reason=refund.get("reason"),
                raw_type=data.get("type"),
                payload=data,
            )

        error = obj.get("last_payment_error") or {}
        return WebhookEvent(
            kind=kind,
            transaction_id=metadata.get("transaction_id"),
            external_transaction_id=obj.get("id"),
            amount=_major_units(obj.get("amount")),
            reason=error.get("message"),
            raw_type=data.get("type"),
            payload=data,
        )
