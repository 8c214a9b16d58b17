"""Deterministic mock provider for development and the test suite.

Never contacts anything. By default every charge succeeds with the
external id `mock_{transaction_id}`; tests can reconfigure it to decline,
to be slow (for timeout handling) or to raise a ProviderError.
"""

import time
from decimal import Decimal
from uuid import uuid4

from commerce.errors import ProviderError
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

_EVENT_KINDS = {
    "payment.captured": WebhookKind.CAPTURED,
    "payment.declined": WebhookKind.DECLINED,
    "refund.succeeded": WebhookKind.REFUNDED,
}


class MockProvider(PaymentProvider):
    name = "mock"

    def __init__(self, webhook_signature: str = "test-signature") -> None:
        self.webhook_signature = webhook_signature
        self.calls: list[dict] = []
        self.reset()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        latency_seconds: float = 0.0,
        raise_error: bool = False,
        provider_state: ProviderState | None = None,
    ) -> None:
        """Configure behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.latency_seconds = latency_seconds
        self.raise_error = raise_error
        self.provider_state = provider_state

    def reset(self) -> None:
        self.calls.clear()
        self.configure()

    def _simulate(self, method: str, **details) -> None:
        self.calls.append({"method": method, **details})
        if self.latency_seconds:
            time.sleep(self.latency_seconds)
        if self.raise_error:
            raise ProviderError(self.name, "Provider unavailable")

    def authorize(self, request: ChargeRequest) -> ChargeResult:
        self._simulate("authorize", transaction_id=request.transaction_id, amount=request.amount)
        if not self.should_succeed:
            return ChargeResult(success=False, provider_status="declined", failure_reason=self.failure_reason)
        return ChargeResult(
            success=True,
            external_transaction_id=f"mock_{request.transaction_id}",
            provider_status="succeeded",
            provider_response="Mock payment processed successfully",
        )

    def refund(self, external_transaction_id: str, amount: Decimal, currency: str, reason: str) -> RefundResult:
        self._simulate("refund", external_transaction_id=external_transaction_id, amount=amount, reason=reason)
        if not self.should_succeed:
            return RefundResult(success=False, provider_status="failed", failure_reason=self.failure_reason)
        return RefundResult(
            success=True,
            external_refund_id=f"mock_refund_{uuid4().hex[:12]}",
            provider_status="succeeded",
        )

    def validate(self, transaction_id: str, external_transaction_id: str | None) -> ProviderCheck:
        self._simulate("validate", transaction_id=transaction_id)
        if self.provider_state is not None:
            return ProviderCheck(state=self.provider_state, external_transaction_id=external_transaction_id)
        if not self.should_succeed:
            return ProviderCheck(state=ProviderState.FAILED, detail=self.failure_reason)
        return ProviderCheck(
            state=ProviderState.CAPTURED,
            external_transaction_id=external_transaction_id or f"mock_{transaction_id}",
        )

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:  # noqa: ARG002
        return signature == self.webhook_signature

    def event_from(self, data: dict) -> WebhookEvent:
        amount = data.get("amount")
        return WebhookEvent(
            kind=_EVENT_KINDS.get(data.get("type"), WebhookKind.UNSUPPORTED),
            transaction_id=data.get("transaction_id"),
            external_transaction_id=data.get("external_transaction_id"),
            external_refund_id=data.get("refund_id"),
            amount=Decimal(str(amount)) if amount is not None else None,
            reason=data.get("reason"),
            raw_type=data.get("type"),
            payload=data,
        )
