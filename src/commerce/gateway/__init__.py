"""Payment provider registry.

Providers are looked up by name. Names without a registered strategy fall
back to the mock provider. Tests swap implementations with
register_provider() / reset_providers().
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import structlog

from commerce.config import get_settings
from commerce.errors import ProviderTimeout
from commerce.gateway.mock_adapter import MockProvider
from commerce.gateway.paypal_adapter import PaypalProvider
from commerce.gateway.port import PaymentProvider
from commerce.gateway.stripe_adapter import StripeProvider

logger = structlog.get_logger(__name__)

DEFAULT_PROVIDER = "mock"

_providers: dict[str, PaymentProvider] = {}


def _defaults() -> dict[str, PaymentProvider]:
    settings = get_settings()
    return {
        "mock": MockProvider(webhook_signature=settings.mock_webhook_signature),
        "stripe": StripeProvider(webhook_secret=settings.stripe_webhook_secret),
        "paypal": PaypalProvider(webhook_secret=settings.paypal_webhook_secret),
    }


def get_provider(name: str | None) -> PaymentProvider:
    """Return the strategy registered for `name`, or the mock provider."""
    if not _providers:
        _providers.update(_defaults())
    key = (name or DEFAULT_PROVIDER).lower()
    if key not in _providers:
        logger.warning("Unknown payment provider, using mock", provider=name)
        key = DEFAULT_PROVIDER
    return _providers[key]


def register_provider(name: str, provider: PaymentProvider) -> None:
    """Override the strategy for a provider name (useful for tests)."""
    if not _providers:
        _providers.update(_defaults())
    _providers[name.lower()] = provider


def reset_providers() -> None:
    """Drop overrides; defaults are rebuilt on next lookup."""
    _providers.clear()


def call_with_timeout(provider: PaymentProvider, method: str, *args, timeout: float | None = None, **kwargs):
    """Call `provider.<method>` and give up after `timeout` seconds with ProviderTimeout.

    Each call gets its own single-worker executor, shut down without waiting:
    a timed-out call finishes in the background and its result is discarded.
    """
    timeout = timeout if timeout is not None else get_settings().provider_timeout_seconds
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"provider-{provider.name}")
    try:
        future = executor.submit(getattr(provider, method), *args, **kwargs)
        return future.result(timeout=timeout)
    except FutureTimeout:
        raise ProviderTimeout(provider.name, f"{method} did not answer within {timeout}s") from None
    finally:
        executor.shutdown(wait=False)


def known_providers() -> set[str]:
    if not _providers:
        _providers.update(_defaults())
    return set(_providers)
