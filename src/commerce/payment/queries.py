"""Payment lookups and customer payment history."""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.payment.payment import Payment
from commerce.utils.paging import fetch_all


def _first(**filters) -> Payment | None:
    result = current_domain.repository_for(Payment)._dao.query.filter(**filters).all()
    return result.items[0] if result.items else None


def load_payment(payment_id) -> Payment | None:
    try:
        return current_domain.repository_for(Payment).get(str(payment_id))
    except ObjectNotFoundError:
        return None


def payment_for_order(order_id) -> Payment | None:
    return _first(order_id=str(order_id))


def payment_by_transaction(transaction_id) -> Payment | None:
    return _first(transaction_id=transaction_id) if transaction_id else None


def payment_by_external_id(external_transaction_id) -> Payment | None:
    return _first(external_transaction_id=external_transaction_id) if external_transaction_id else None


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def payment_history(
    customer_id=None, date_from: datetime | None = None, date_to: datetime | None = None
) -> list[Payment]:
    """Payments newest first, optionally within a date range.

    Without a customer id every customer's payments are returned.
    """
    query = current_domain.repository_for(Payment)._dao.query
    payments = fetch_all(query.filter(customer_id=str(customer_id)) if customer_id else query)
    if date_from:
        payments = [p for p in payments if _aware(p.created_at) >= _aware(date_from)]
    if date_to:
        payments = [p for p in payments if _aware(p.created_at) <= _aware(date_to)]
    return sorted(payments, key=lambda p: p.created_at, reverse=True)
