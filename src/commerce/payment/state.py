"""The payment state machine as one pure function.

Synchronous processing, refunds, reconciliation and provider webhooks all
call `next_status`, so no entry point can reach a state another would
reject. A signal that contradicts the current state (a late capture for a
failed payment, a refund before capture) raises StalePaymentSignal.

    Processing --captured--> Completed
    Processing --declined--> Failed
    Processing | Completed --invalidated--> Failed
    Completed | PartiallyRefunded --refunded--> PartiallyRefunded | Refunded
"""

from enum import Enum

from commerce.errors import InvalidAmount, StalePaymentSignal
from commerce.money import to_money


class PaymentStatus(Enum):
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    PARTIALLY_REFUNDED = "PartiallyRefunded"
    REFUNDED = "Refunded"


class PaymentSignal(Enum):
    CAPTURED = "captured"
    DECLINED = "declined"
    INVALIDATED = "invalidated"
    REFUNDED = "refunded"


REFUNDABLE_STATES = {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED}
TERMINAL_STATES = {PaymentStatus.FAILED, PaymentStatus.REFUNDED}


def next_status(current, signal: PaymentSignal, amount=None, refunded_total=None) -> PaymentStatus:
    """Return the status after `signal`, or raise if the signal does not apply.

    For REFUNDED, `amount` is the captured amount and `refunded_total` the
    cumulative refunded amount including this refund.
    """
    status = PaymentStatus(current)

    if signal == PaymentSignal.CAPTURED and status == PaymentStatus.PROCESSING:
        return PaymentStatus.COMPLETED
    if signal == PaymentSignal.DECLINED and status == PaymentStatus.PROCESSING:
        return PaymentStatus.FAILED
    if signal == PaymentSignal.INVALIDATED and status in (PaymentStatus.PROCESSING, PaymentStatus.COMPLETED):
        return PaymentStatus.FAILED
    if signal == PaymentSignal.REFUNDED and status in REFUNDABLE_STATES:
        captured, refunded = to_money(amount), to_money(refunded_total)
        if refunded > captured:
            raise InvalidAmount(f"Refunds would total {refunded}, more than the {captured} paid")
        return PaymentStatus.REFUNDED if refunded == captured else PaymentStatus.PARTIALLY_REFUNDED

    raise StalePaymentSignal(status.value, signal.value)
