"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state; no cross-user sharing.
State tracks ids returned by creation endpoints so follow-up operations
can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class CheckoutState:
    """Tracks a single customer's cart-to-payment journey."""

    customer_id: str | None = None
    vendor_id: str | None = None
    product_ids: list[str] = field(default_factory=list)
    line_ids: list[str] = field(default_factory=list)
    order_id: str | None = None
    payment_id: str | None = None
    current_status: str = "Pending"


@dataclass
class MergeState:
    """Tracks a guest cart that is merged into a customer cart on sign-in."""

    guest_id: str | None = None
    customer_id: str | None = None
    product_id: str | None = None
