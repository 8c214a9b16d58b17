import json

import pytest
from protean import current_domain

from commerce.config import CommerceSettings
from commerce.errors import InvalidWebhookSignature
from commerce.gateway.signing import sign, stripe_signature_header
from commerce.order.order import Order, OrderStatus
from commerce.payment.payment import Payment
from commerce.payment.refund import RefundPayment
from commerce.payment.state import PaymentStatus
from commerce.payment.webhook import HandleProviderWebhook


@pytest.fixture()
def order_id(make_product, place_order):
    make_product()
    return place_order(items=[{"product_id": "prod-001", "quantity": 2}])


@pytest.fixture()
def stuck_payment(order_id, pay_order, mock_provider, monkeypatch):
    monkeypatch.setattr("commerce.gateway.get_settings", lambda: CommerceSettings(provider_timeout_seconds=0.05))
    mock_provider.configure(latency_seconds=0.5)
    payment_id = pay_order(order_id)
    mock_provider.configure()
    return current_domain.repository_for(Payment).get(payment_id)


def _deliver(provider, payload, signature=None):
    body = payload if isinstance(payload, str) else json.dumps(payload)
    if signature is None:
        signature = {
            "mock": "test-signature",
            "stripe": stripe_signature_header(body, "whsec_local"),
            "paypal": sign(body, "paypal_local"),
        }[provider]
    return current_domain.process(
        HandleProviderWebhook(provider=provider, raw_payload=body, signature=signature),
        asynchronous=False,
    )


def _payment(payment_id) -> Payment:
    return current_domain.repository_for(Payment).get(payment_id)


class TestCaptureWebhooks:
    def test_mock_capture_applies(self, stuck_payment, order_id):
        outcome = _deliver(
            "mock",
            {
                "type": "payment.captured",
                "transaction_id": stuck_payment.transaction_id,
                "external_transaction_id": "mock_ext_1",
            },
        )

        assert outcome == "applied"
        payment = _payment(stuck_payment.id)
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.external_transaction_id == "mock_ext_1"
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.CONFIRMED.value

    def test_redelivered_capture_is_duplicate(self, stuck_payment):
        payload = {
            "type": "payment.captured",
            "transaction_id": stuck_payment.transaction_id,
            "external_transaction_id": "mock_ext_1",
        }
        assert _deliver("mock", payload) == "applied"
        assert _deliver("mock", payload) == "duplicate"
        assert _payment(stuck_payment.id).status == PaymentStatus.COMPLETED.value

    def test_capture_after_failure_is_rejected(self, stuck_payment):
        _deliver("mock", {"type": "payment.declined", "transaction_id": stuck_payment.transaction_id})

        outcome = _deliver(
            "mock",
            {"type": "payment.captured", "transaction_id": stuck_payment.transaction_id},
        )

        assert outcome == "rejected"
        assert _payment(stuck_payment.id).status == PaymentStatus.FAILED.value

    def test_stripe_capture_by_metadata(self, stuck_payment):
        outcome = _deliver(
            "stripe",
            {
                "type": "payment_intent.succeeded",
                "data": {
                    "object": {
                        "id": "pi_123",
                        "amount": 59998,
                        "metadata": {"transaction_id": stuck_payment.transaction_id},
                    }
                },
            },
        )
        assert outcome == "applied"
        assert _payment(stuck_payment.id).external_transaction_id == "pi_123"

    def test_paypal_capture(self, stuck_payment):
        outcome = _deliver(
            "paypal",
            {
                "event_type": "PAYMENT.CAPTURE.COMPLETED",
                "resource": {
                    "id": "CAP-1",
                    "custom_id": stuck_payment.transaction_id,
                    "amount": {"value": "599.98", "currency_code": "USD"},
                },
            },
        )
        assert outcome == "applied"

    def test_unknown_payment_is_rejected(self, stuck_payment):
        outcome = _deliver("mock", {"type": "payment.captured", "transaction_id": "TXN_unknown"})
        assert outcome == "rejected"
        assert _payment(stuck_payment.id).status == PaymentStatus.PROCESSING.value

    def test_unsupported_event_is_rejected(self, stuck_payment):
        outcome = _deliver("mock", {"type": "customer.created", "transaction_id": stuck_payment.transaction_id})
        assert outcome == "rejected"


class TestDeclineWebhooks:
    def test_decline_fails_processing_payment(self, stuck_payment, order_id):
        outcome = _deliver(
            "mock",
            {"type": "payment.declined", "transaction_id": stuck_payment.transaction_id, "reason": "Stolen card"},
        )

        assert outcome == "applied"
        payment = _payment(stuck_payment.id)
        assert payment.status == PaymentStatus.FAILED.value
        assert payment.failure_reason == "Stolen card"
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value

    def test_decline_of_completed_payment_is_rejected(self, order_id, pay_order):
        payment = _payment(pay_order(order_id))
        outcome = _deliver("mock", {"type": "payment.declined", "transaction_id": payment.transaction_id})
        assert outcome == "rejected"
        assert _payment(payment.id).status == PaymentStatus.COMPLETED.value


class TestRefundWebhooks:
    @pytest.fixture()
    def paid(self, order_id, pay_order):
        return _payment(pay_order(order_id))

    def test_refund_applies_once(self, paid):
        payload = {
            "type": "refund.succeeded",
            "transaction_id": paid.transaction_id,
            "refund_id": "rf_1",
            "amount": 100.00,
        }

        assert _deliver("mock", payload) == "applied"
        assert _deliver("mock", payload) == "duplicate"

        payment = _payment(paid.id)
        assert payment.refunded_amount == 100.00
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED.value

    def test_refund_issued_here_is_not_applied_twice(self, paid):
        current_domain.process(
            RefundPayment(payment_id=paid.id, amount=100.00, actor_id="admin-001", actor_role="Admin"),
            asynchronous=False,
        )
        refund_id = _payment(paid.id).refunds[0].external_refund_id

        outcome = _deliver(
            "mock",
            {"type": "refund.succeeded", "transaction_id": paid.transaction_id, "refund_id": refund_id, "amount": 100},
        )

        assert outcome == "duplicate"
        assert _payment(paid.id).refunded_amount == 100.00

    def test_refund_beyond_balance_is_rejected(self, paid):
        outcome = _deliver(
            "mock",
            {"type": "refund.succeeded", "transaction_id": paid.transaction_id, "refund_id": "rf_2", "amount": 700},
        )

        assert outcome == "rejected"
        assert _payment(paid.id).refunded_amount == 0.0

    def test_stripe_refund_in_minor_units(self, paid):
        outcome = _deliver(
            "stripe",
            {
                "type": "charge.refunded",
                "data": {
                    "object": {
                        "payment_intent": paid.external_transaction_id,
                        "metadata": {"transaction_id": paid.transaction_id},
                        "refund": {"id": "re_1", "amount": 59998},
                    }
                },
            },
        )

        assert outcome == "applied"
        assert _payment(paid.id).status == PaymentStatus.REFUNDED.value

    def test_refund_without_provider_id_is_never_applied(self, paid):
        payload = {"type": "refund.succeeded", "transaction_id": paid.transaction_id, "amount": 100.0}

        assert _deliver("mock", payload) == "rejected"
        assert _deliver("mock", payload) == "rejected"

        payment = _payment(paid.id)
        assert payment.refunded_amount == 0.0
        assert payment.status == PaymentStatus.COMPLETED.value
        assert len(payment.refunds) == 0


class TestSignatures:
    def test_bad_mock_signature(self, stuck_payment):
        with pytest.raises(InvalidWebhookSignature):
            _deliver(
                "mock",
                {"type": "payment.captured", "transaction_id": stuck_payment.transaction_id},
                signature="forged",
            )
        assert _payment(stuck_payment.id).status == PaymentStatus.PROCESSING.value

    def test_bad_stripe_signature(self, stuck_payment):
        with pytest.raises(InvalidWebhookSignature):
            _deliver("stripe", {"type": "payment_intent.succeeded"}, signature=stripe_signature_header("{}", "whsec_local"))

    def test_unknown_provider(self):
        with pytest.raises(InvalidWebhookSignature):
            _deliver("acme", {"type": "payment.captured"}, signature="test-signature")

    def test_legacy_bare_hmac_is_refused_for_stripe(self, stuck_payment):
        body = json.dumps({"type": "payment_intent.succeeded"})
        with pytest.raises(InvalidWebhookSignature):
            _deliver("stripe", body, signature=sign(body, "whsec_local"))

    def test_expired_stripe_timestamp(self, stuck_payment):
        body = json.dumps({"type": "payment_intent.succeeded"})
        with pytest.raises(InvalidWebhookSignature):
            _deliver("stripe", body, signature=stripe_signature_header(body, "whsec_local", timestamp=1_000_000))


class TestUnreadablePayloads:
    def test_signed_body_that_is_not_json(self, stuck_payment):
        assert _deliver("mock", "not json at all") == "rejected"
        assert _payment(stuck_payment.id).status == PaymentStatus.PROCESSING.value

    def test_signed_json_that_is_not_an_object(self, stuck_payment):
        assert _deliver("paypal", json.dumps(["PAYMENT.CAPTURE.COMPLETED"])) == "rejected"

    def test_stripe_event_with_wrong_shape(self, stuck_payment):
        assert _deliver("stripe", {"type": "payment_intent.succeeded", "data": "pi_123"}) == "rejected"
        assert _payment(stuck_payment.id).status == PaymentStatus.PROCESSING.value

    def test_non_numeric_amount(self, order_id, pay_order):
        payment = _payment(pay_order(order_id))
        outcome = _deliver(
            "mock",
            {"type": "refund.succeeded", "transaction_id": payment.transaction_id, "refund_id": "rf_9", "amount": "ten"},
        )
        assert outcome == "rejected"
        assert _payment(payment.id).refunded_amount == 0.0
