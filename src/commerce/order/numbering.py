"""Human-readable order numbers: ORD-{yyyymmdd}-{daily sequence:04d}."""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from commerce.order.order import Order


def _taken(number: str) -> bool:
    return current_domain.repository_for(Order)._dao.query.filter(order_number=number).all().total > 0


def next_order_number(now: datetime | None = None) -> str:
    """Next free number for the day.

    The repository also enforces uniqueness, so two concurrent checkouts that
    pick the same number cannot both commit.
    """
    now = now or datetime.now(UTC)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    created_today = (
        current_domain.repository_for(Order)._dao.query.filter(created_at__gte=day_start).all().total
    )

    sequence = created_today + 1
    number = f"ORD-{now:%Y%m%d}-{sequence:04d}"
    while _taken(number):
        sequence += 1
        number = f"ORD-{now:%Y%m%d}-{sequence:04d}"
    return number
