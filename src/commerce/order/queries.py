"""Read-only order queries: search, per-customer and per-vendor lists, tracking, stats."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from commerce.money import ZERO, money_sum, to_money
from commerce.order.order import Order, OrderStatus
from commerce.utils.paging import fetch_all, paginate

_SORT_KEYS = {
    "date": lambda order: order.created_at,
    "total": lambda order: order.total_amount,
    "status": lambda order: order.status,
    "order_number": lambda order: order.order_number,
}


@dataclass
class OrderSearch:
    order_number: str | None = None
    status: str | None = None
    customer_id: str | None = None
    vendor_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_amount: float | None = None
    max_amount: float | None = None
    sort_by: str = "date"
    descending: bool = True
    page: int = 1
    page_size: int = 20


@dataclass
class OrderPage:
    items: list
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


@dataclass
class DailyOrderStat:
    day: date
    orders: int
    revenue: Decimal


@dataclass
class OrderStats:
    total_orders: int
    status_counts: dict
    total_revenue: Decimal
    average_order_value: Decimal
    daily: list[DailyOrderStat] = field(default_factory=list)


def load_order(order_id) -> Order | None:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        return None


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _candidates(criteria: OrderSearch) -> list[Order]:
    filters = {}
    if criteria.order_number:
        filters["order_number"] = criteria.order_number
    if criteria.status:
        filters["status"] = criteria.status
    if criteria.customer_id:
        filters["customer_id"] = criteria.customer_id
    query = current_domain.repository_for(Order)._dao.query
    return fetch_all(query.filter(**filters) if filters else query)


def _matches(order: Order, criteria: OrderSearch) -> bool:
    created_at = _aware(order.created_at)
    if criteria.date_from and created_at < _aware(criteria.date_from):
        return False
    if criteria.date_to and created_at > _aware(criteria.date_to):
        return False
    if criteria.min_amount is not None and to_money(order.total_amount) < to_money(criteria.min_amount):
        return False
    if criteria.max_amount is not None and to_money(order.total_amount) > to_money(criteria.max_amount):
        return False
    if criteria.vendor_id and str(criteria.vendor_id) not in order.vendor_ids:
        return False
    return True


def search_orders(criteria: OrderSearch) -> OrderPage:
    if criteria.sort_by not in _SORT_KEYS:
        raise ValidationError({"sort_by": [f"Cannot sort by {criteria.sort_by}"]})
    if criteria.status:
        try:
            OrderStatus(criteria.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {criteria.status}"]}) from None

    matched = [order for order in _candidates(criteria) if _matches(order, criteria)]
    matched.sort(key=_SORT_KEYS[criteria.sort_by], reverse=criteria.descending)
    return OrderPage(
        items=paginate(matched, criteria.page, criteria.page_size),
        total=len(matched),
        page=criteria.page,
        page_size=criteria.page_size,
    )


def customer_orders(customer_id, status: str | None = None, page: int = 1, page_size: int = 20) -> OrderPage:
    return search_orders(OrderSearch(customer_id=customer_id, status=status, page=page, page_size=page_size))


def vendor_orders(vendor_id, status: str | None = None, page: int = 1, page_size: int = 20) -> OrderPage:
    return search_orders(OrderSearch(vendor_id=vendor_id, status=status, page=page, page_size=page_size))


def order_tracking(order_id) -> list:
    order = current_domain.repository_for(Order).get(str(order_id))
    return order.timeline()


def order_stats(
    vendor_id=None,
    days: int = 30,
    today: date | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> OrderStats:
    """Counts per status, revenue without cancelled orders, and a daily series.

    `date_from` and `date_to` bound the orders counted, inclusive. The daily
    series always covers the `days` days up to `today`.
    """
    criteria = OrderSearch(vendor_id=vendor_id, date_from=date_from, date_to=date_to)
    orders = [order for order in _candidates(criteria) if _matches(order, criteria)]

    counts = {status.value: 0 for status in OrderStatus}
    for order in orders:
        counts[order.status] = counts.get(order.status, 0) + 1

    earning = [order for order in orders if order.status != OrderStatus.CANCELLED.value]
    revenue = money_sum(order.total_amount for order in earning)
    average = to_money(revenue / len(earning)) if earning else ZERO

    today = today or datetime.now(UTC).date()
    daily = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        on_day = [order for order in earning if _aware(order.created_at).date() == day]
        daily.append(DailyOrderStat(day=day, orders=len(on_day), revenue=money_sum(o.total_amount for o in on_day)))

    return OrderStats(
        total_orders=len(orders),
        status_counts=counts,
        total_revenue=revenue,
        average_order_value=average,
        daily=daily,
    )
