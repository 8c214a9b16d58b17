"""Event handlers that forward order and payment changes to the dispatcher.

Notifications are fire-and-forget: a dispatch failure is logged and never
propagates into the transaction that raised the event.
"""

import structlog
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.notification import get_dispatcher
from commerce.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged, OrderTrackingUpdated
from commerce.order.order import Order
from commerce.payment.events import PaymentCompleted, PaymentFailed, PaymentRefunded
from commerce.payment.payment import Payment

logger = structlog.get_logger(__name__)


def notify(recipient_id: str, topic: str, **context) -> bool:
    try:
        get_dispatcher().dispatch(str(recipient_id), topic, context)
    except Exception:
        logger.exception("Notification dispatch failed", recipient_id=str(recipient_id), topic=topic)
        return False
    return True


@commerce.event_handler(part_of=Order)
class OrderNotifications:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        notify(
            event.customer_id,
            "order_placed",
            order_id=str(event.order_id),
            order_number=event.order_number,
            total_amount=event.total_amount,
            currency=event.currency,
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        notify(
            event.customer_id,
            "order_status_changed",
            order_id=str(event.order_id),
            order_number=event.order_number,
            previous_status=event.previous_status,
            new_status=event.new_status,
        )

    @handle(OrderCancelled)
    def on_cancelled(self, event: OrderCancelled) -> None:
        notify(
            event.customer_id,
            "order_cancelled",
            order_id=str(event.order_id),
            order_number=event.order_number,
            reason=event.reason,
        )

    @handle(OrderTrackingUpdated)
    def on_tracking_updated(self, event: OrderTrackingUpdated) -> None:
        notify(
            event.customer_id,
            "order_tracking_updated",
            order_id=str(event.order_id),
            order_number=event.order_number,
            tracking_number=event.tracking_number,
            location=event.location,
        )


@commerce.event_handler(part_of=Payment)
class PaymentNotifications:
    @handle(PaymentCompleted)
    def on_completed(self, event: PaymentCompleted) -> None:
        notify(
            event.customer_id,
            "payment_receipt",
            order_id=str(event.order_id),
            amount=event.amount,
            currency=event.currency,
            transaction_id=event.transaction_id,
        )

    @handle(PaymentFailed)
    def on_failed(self, event: PaymentFailed) -> None:
        notify(event.customer_id, "payment_failed", order_id=str(event.order_id), reason=event.reason)

    @handle(PaymentRefunded)
    def on_refunded(self, event: PaymentRefunded) -> None:
        notify(
            event.customer_id,
            "payment_refunded",
            order_id=str(event.order_id),
            amount=event.amount,
            refunded_amount=event.refunded_amount,
            currency=event.currency,
        )
