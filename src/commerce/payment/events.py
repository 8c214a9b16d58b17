"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from commerce.domain import commerce


@commerce.event(part_of="Payment")
class PaymentCompleted:
    """The provider captured the payment."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    transaction_id = String(required=True)
    external_transaction_id = String()
    provider = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    completed_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class PaymentFailed:
    """The provider declined the payment, or reconciliation found a mismatch."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    transaction_id = String(required=True)
    provider = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class PaymentRefunded:
    """Part or all of a captured payment was refunded."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    refunded_amount = Float(required=True)
    status = String(required=True)
    currency = String(required=True)
    external_refund_id = String()
    reason = String()
    refunded_at = DateTime(required=True)
