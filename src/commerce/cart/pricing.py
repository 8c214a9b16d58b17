"""Shipping and tax estimation strategies for cart summaries.

The rates are configuration (domain.toml `[custom]`), not business rules:
the 10% tax and 0.5 kg default item weight are provisional defaults.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from protean.exceptions import ValidationError

from commerce.config import CommerceSettings, get_settings
from commerce.money import ZERO, to_money


class ShippingStrategy(ABC):
    @abstractmethod
    def estimate(self, parcels: list[tuple[float | None, int]]) -> Decimal:
        """Estimate shipping for (unit weight in kg or None, quantity) pairs."""


class TaxStrategy(ABC):
    @abstractmethod
    def estimate(self, subtotal: Decimal) -> Decimal:
        """Estimate tax owed on `subtotal`."""


class WeightBasedShipping(ShippingStrategy):
    """Base rate plus a per-kilogram rate over the total weight."""

    def __init__(self, base_rate, per_kg_rate, default_item_weight_kg=0.5):
        self.base_rate = to_money(base_rate)
        self.per_kg_rate = Decimal(str(per_kg_rate))
        self.default_item_weight_kg = Decimal(str(default_item_weight_kg))

    def total_weight(self, parcels) -> Decimal:
        weight = Decimal("0")
        for unit_weight, quantity in parcels:
            unit = Decimal(str(unit_weight)) if unit_weight else self.default_item_weight_kg
            weight += unit * quantity
        return weight

    def estimate(self, parcels) -> Decimal:
        if not parcels:
            return ZERO
        return to_money(self.base_rate + self.total_weight(parcels) * self.per_kg_rate)


class FlatRateTax(TaxStrategy):
    def __init__(self, rate):
        self.rate = Decimal(str(rate))

    def estimate(self, subtotal: Decimal) -> Decimal:
        return to_money(to_money(subtotal) * self.rate)


def shipping_strategy(settings: CommerceSettings | None = None, method: str | None = None) -> ShippingStrategy:
    settings = settings or get_settings()
    method = method or settings.shipping_method
    rates = settings.shipping_rates.get(method)
    if rates is None:
        raise ValidationError({"shipping_method": [f"Unknown shipping method: {method}"]})
    return WeightBasedShipping(
        base_rate=rates["base"],
        per_kg_rate=rates["per_kg"],
        default_item_weight_kg=settings.default_item_weight_kg,
    )


def tax_strategy(settings: CommerceSettings | None = None) -> TaxStrategy:
    settings = settings or get_settings()
    return FlatRateTax(settings.tax_rate)
