import pytest
from protean import current_domain
from protean.exceptions import InvalidOperationError

from commerce.config import CommerceSettings
from commerce.errors import Unauthorized
from commerce.order.cancellation import CancelOrder
from commerce.order.order import Order, OrderStatus
from commerce.order.status import UpdateOrderStatus
from commerce.payment.payment import Payment
from commerce.payment.queries import payment_for_order
from commerce.payment.state import PaymentStatus
from commerce.stock.product import Product


@pytest.fixture()
def order_id(make_product, place_order):
    make_product(stock_quantity=10)
    return place_order(items=[{"product_id": "prod-001", "quantity": 2}])


def _cancel(order_id, reason="Changed my mind", actor_id="cust-001", actor_role=None):
    return current_domain.process(
        CancelOrder(order_id=order_id, reason=reason, actor_id=actor_id, actor_role=actor_role),
        asynchronous=False,
    )


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _stock():
    return current_domain.repository_for(Product).get("prod-001").stock_quantity


class TestCancelOrder:
    def test_unpaid_order_restores_stock(self, order_id):
        assert _stock() == 8

        _cancel(order_id)

        order = _order(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Changed my mind"
        assert order.cancelled_at is not None
        assert order.timeline()[-1].note == "Order cancelled: Changed my mind"
        assert _stock() == 10

    def test_paid_order_is_refunded_in_full(self, order_id, pay_order):
        pay_order(order_id)

        _cancel(order_id)

        payment = payment_for_order(order_id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunded_amount == 599.98
        assert payment.refunds[0].reason == "Order cancelled: Changed my mind"
        assert _order(order_id).status == OrderStatus.CANCELLED.value

    def test_partially_refunded_order_refunds_the_rest(self, order_id, pay_order):
        from commerce.payment.refund import RefundPayment

        payment_id = pay_order(order_id)
        current_domain.process(
            RefundPayment(payment_id=payment_id, amount=100.00, actor_id="admin-001", actor_role="Admin"),
            asynchronous=False,
        )

        _cancel(order_id)

        payment = current_domain.repository_for(Payment).get(payment_id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunds[-1].amount == 499.98

    def test_failed_payment_needs_no_refund(self, order_id, pay_order, mock_provider):
        mock_provider.configure(should_succeed=False)
        pay_order(order_id)

        _cancel(order_id)

        assert _order(order_id).status == OrderStatus.CANCELLED.value
        assert payment_for_order(order_id).status == PaymentStatus.FAILED.value

    def test_processing_payment_blocks_cancellation(self, order_id, pay_order, mock_provider, monkeypatch):
        monkeypatch.setattr("commerce.gateway.get_settings", lambda: CommerceSettings(provider_timeout_seconds=0.05))
        mock_provider.configure(latency_seconds=0.5)
        pay_order(order_id)

        with pytest.raises(InvalidOperationError):
            _cancel(order_id)

        assert _order(order_id).status == OrderStatus.PENDING.value
        assert _stock() == 8

    def test_refund_refusal_blocks_cancellation(self, order_id, pay_order, mock_provider):
        pay_order(order_id)
        mock_provider.configure(should_succeed=False)

        with pytest.raises(InvalidOperationError):
            _cancel(order_id)

        assert _order(order_id).status == OrderStatus.CONFIRMED.value
        assert payment_for_order(order_id).status == PaymentStatus.COMPLETED.value
        assert _stock() == 8

    def test_shipped_order_cannot_be_cancelled(self, order_id, pay_order):
        pay_order(order_id)
        for status in ("Processing", "Shipped"):
            current_domain.process(
                UpdateOrderStatus(order_id=order_id, status=status, actor_id="vendor-001", actor_role="Vendor"),
                asynchronous=False,
            )

        with pytest.raises(InvalidOperationError):
            _cancel(order_id)
        assert _stock() == 8

    def test_cancel_twice(self, order_id):
        _cancel(order_id)
        with pytest.raises(InvalidOperationError):
            _cancel(order_id)
        assert _stock() == 10

    def test_other_customer_cannot_cancel(self, order_id):
        with pytest.raises(Unauthorized):
            _cancel(order_id, actor_id="cust-999")

    def test_admin_can_cancel(self, order_id):
        _cancel(order_id, actor_id="admin-001", actor_role="Admin")
        assert _order(order_id).timeline()[-1].actor_role == "Admin"
