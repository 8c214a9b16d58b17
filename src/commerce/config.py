"""Runtime settings.

Values come from the `[custom]` table of domain.toml; environment variables
of the same name (`STRIPE_WEBHOOK_SECRET`, `PROVIDER_TIMEOUT_SECONDS`, ...)
take precedence over the file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from protean.utils.globals import current_domain

_DEFAULT_SHIPPING_RATES = {
    "standard": {"base": 5.00, "per_kg": 1.00},
    "express": {"base": 15.00, "per_kg": 2.00},
    "overnight": {"base": 25.00, "per_kg": 3.00},
}


class CommerceSettings(BaseSettings):
    """Pricing, provider and webhook settings of the commerce core."""

    model_config = SettingsConfigDict(frozen=True, extra="ignore", case_sensitive=False)

    default_currency: str = Field("USD", min_length=3, max_length=3, description="Currency of new orders")
    tax_rate: float = Field(0.10, ge=0, description="Flat tax rate applied to the cart subtotal")
    default_item_weight_kg: float = Field(0.5, ge=0, description="Weight used for products without one")
    shipping_method: str = Field("standard", description="Shipping method used for cart estimates")
    shipping_rates: dict[str, dict[str, float]] = Field(
        default_factory=lambda: {method: dict(rates) for method, rates in _DEFAULT_SHIPPING_RATES.items()},
        description="Base and per-kg rate per shipping method",
    )
    provider_timeout_seconds: float = Field(10.0, gt=0, description="Upper bound on one payment provider call")
    stripe_webhook_secret: str = Field("whsec_local", description="Stripe webhook signing secret")
    paypal_webhook_secret: str = Field("paypal_local", description="PayPal webhook signing secret")
    mock_webhook_signature: str = Field("test-signature", description="Signature the mock provider accepts")

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return env_settings, init_settings, file_secret_settings

    @classmethod
    def from_mapping(cls, custom: dict) -> "CommerceSettings":
        """Build settings from domain.toml's upper-case `[custom]` keys."""
        known = cls.model_fields
        return cls(**{key.lower(): value for key, value in custom.items() if key.lower() in known})


def get_settings() -> CommerceSettings:
    """Settings of the active domain."""
    return CommerceSettings.from_mapping(current_domain.config.get("custom") or {})
