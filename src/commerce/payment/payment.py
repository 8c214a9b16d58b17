"""Payment aggregate: one payment per order, driven by the provider.

The status only moves through `commerce.payment.state.next_status`.
`refunded_amount` accumulates and can never exceed `amount`.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from commerce.domain import commerce
from commerce.errors import ConsistencyViolation, InvalidAmount
from commerce.money import ZERO, as_float, to_money
from commerce.payment.events import PaymentCompleted, PaymentFailed, PaymentRefunded
from commerce.payment.state import REFUNDABLE_STATES, PaymentSignal, PaymentStatus, next_status


class RefundStatus(Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"


def new_transaction_id(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"TXN_{now:%Y%m%d%H%M%S}_{uuid4().hex[:8]}"


@commerce.entity(part_of="Payment")
class PaymentRefund:
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)
    external_refund_id = String(max_length=255)
    status = String(choices=RefundStatus, required=True)
    failure_reason = String(max_length=500)
    requested_at = DateTime(required=True)

    @property
    def succeeded(self) -> bool:
        return self.status == RefundStatus.COMPLETED.value


@commerce.aggregate
class Payment:
    order_id = Identifier(required=True, unique=True)
    customer_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    method = String(max_length=50)
    transaction_id = String(required=True, max_length=64, unique=True)
    external_transaction_id = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(choices=PaymentStatus, default=PaymentStatus.PROCESSING.value)
    refunded_amount = Float(default=0.0)
    failure_reason = String(max_length=500)
    provider_response = Text()
    refunds = HasMany(PaymentRefund)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunds_never_exceed_amount(self):
        if to_money(self.refunded_amount or 0) > to_money(self.amount):
            raise ConsistencyViolation(
                f"Payment {self.transaction_id} refunded {self.refunded_amount} of {self.amount}"
            )

    @classmethod
    def start(cls, order_id, customer_id, amount, provider, method=None, currency="USD"):
        """A new payment in Processing, before the provider is called."""
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            customer_id=customer_id,
            provider=provider,
            method=method,
            transaction_id=new_transaction_id(now),
            amount=as_float(amount),
            currency=currency,
            status=PaymentStatus.PROCESSING.value,
            refunded_amount=0.0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def remaining_amount(self):
        return to_money(self.amount) - to_money(self.refunded_amount or 0)

    def has_refund(self, external_refund_id) -> bool:
        if not external_refund_id:
            return False
        return any(
            refund.external_refund_id == external_refund_id and refund.succeeded for refund in self.refunds
        )

    def assert_refundable(self, amount) -> None:
        """Raise unless `amount` can be refunded now."""
        if PaymentStatus(self.status) not in REFUNDABLE_STATES:
            raise InvalidOperationError(f"Payment in {self.status} state cannot be refunded")
        if to_money(amount) <= ZERO:
            raise ValidationError({"amount": ["Refund amount must be greater than zero"]})
        if to_money(self.refunded_amount or 0) + to_money(amount) > to_money(self.amount):
            raise InvalidAmount(
                f"Refund of {to_money(amount)} exceeds the refundable balance of {self.remaining_amount}"
            )

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def complete(self, external_transaction_id=None, provider_response=None):
        self.status = next_status(self.status, PaymentSignal.CAPTURED).value
        now = datetime.now(UTC)
        if external_transaction_id:
            self.external_transaction_id = external_transaction_id
        self.provider_response = provider_response
        self.failure_reason = None
        self.processed_at = now
        self.updated_at = now

        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                transaction_id=self.transaction_id,
                external_transaction_id=self.external_transaction_id,
                provider=self.provider,
                amount=self.amount,
                currency=self.currency,
                completed_at=now,
            )
        )

    def _fail(self, signal: PaymentSignal, reason: str):
        self.status = next_status(self.status, signal).value
        now = datetime.now(UTC)
        self.failure_reason = reason
        self.processed_at = now
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                transaction_id=self.transaction_id,
                provider=self.provider,
                reason=reason,
                failed_at=now,
            )
        )

    def fail(self, reason: str):
        """Provider declined or errored."""
        self._fail(PaymentSignal.DECLINED, reason)

    def invalidate(self, reason: str = "Payment validation failed"):
        """Reconciliation found the provider disagrees with our record."""
        self._fail(PaymentSignal.INVALIDATED, reason)

    def record_refund(self, amount, reason=None, external_refund_id=None) -> PaymentRefund:
        self.assert_refundable(amount)
        refunded_total = to_money(self.refunded_amount or 0) + to_money(amount)
        status = next_status(self.status, PaymentSignal.REFUNDED, amount=self.amount, refunded_total=refunded_total)

        now = datetime.now(UTC)
        refund = PaymentRefund(
            amount=as_float(amount),
            reason=reason,
            external_refund_id=external_refund_id,
            status=RefundStatus.COMPLETED.value,
            requested_at=now,
        )
        self.add_refunds(refund)
        self.refunded_amount = as_float(refunded_total)
        self.status = status.value
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                amount=refund.amount,
                refunded_amount=self.refunded_amount,
                status=self.status,
                currency=self.currency,
                external_refund_id=external_refund_id,
                reason=reason,
                refunded_at=now,
            )
        )
        return refund

    def record_failed_refund(self, amount, reason=None, failure_reason=None) -> PaymentRefund:
        """Keep a trace of a refund the provider refused; balances are untouched."""
        refund = PaymentRefund(
            amount=as_float(amount),
            reason=reason,
            status=RefundStatus.FAILED.value,
            failure_reason=failure_reason,
            requested_at=datetime.now(UTC),
        )
        self.add_refunds(refund)
        self.updated_at = datetime.now(UTC)
        return refund
