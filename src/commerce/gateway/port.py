"""Payment provider port (abstract interface).

Every provider strategy implements authorize, refund and validate, plus
webhook signature checking and parsing. Domain code only talks to this
interface; the registry in `commerce.gateway` picks the implementation by
provider name.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from commerce.errors import MalformedWebhookPayload


class ProviderState(Enum):
    CAPTURED = "captured"
    FAILED = "failed"
    PENDING = "pending"


class WebhookKind(Enum):
    CAPTURED = "captured"
    DECLINED = "declined"
    REFUNDED = "refunded"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ChargeRequest:
    transaction_id: str
    amount: Decimal
    currency: str
    method: str | None = None
    card_token: str | None = None
    paypal_payment_id: str | None = None
    customer_id: str | None = None


@dataclass(frozen=True)
class ChargeResult:
    """Result of an authorize/capture attempt."""

    success: bool
    external_transaction_id: str | None = None
    provider_status: str | None = None
    provider_response: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    external_refund_id: str | None = None
    provider_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class ProviderCheck:
    """What the provider currently says about a transaction."""

    state: ProviderState
    external_transaction_id: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """A provider notification normalized to the core's vocabulary."""

    kind: WebhookKind
    transaction_id: str | None = None
    external_transaction_id: str | None = None
    external_refund_id: str | None = None
    amount: Decimal | None = None
    reason: str | None = None
    raw_type: str | None = None
    payload: dict = field(default_factory=dict)


class PaymentProvider(ABC):
    """Abstract payment provider strategy."""

    name: str = ""

    @abstractmethod
    def authorize(self, request: ChargeRequest) -> ChargeResult:
        """Authorize and capture the charge."""
        ...

    @abstractmethod
    def refund(self, external_transaction_id: str, amount: Decimal, currency: str, reason: str) -> RefundResult:
        """Refund part or all of a captured charge."""
        ...

    @abstractmethod
    def validate(self, transaction_id: str, external_transaction_id: str | None) -> ProviderCheck:
        """Re-confirm the provider-side state of a transaction."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the provider."""
        ...

    def parse_webhook(self, payload: bytes | str) -> WebhookEvent:
        """Translate a provider payload into a WebhookEvent.

        Raises MalformedWebhookPayload when the body is not a JSON object or
        does not have the provider's event shape.
        """
        try:
            data = json.loads(payload)
        except ValueError as exc:
            raise MalformedWebhookPayload(self.name, "body is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedWebhookPayload(self.name, "body is not a JSON object")
        try:
            return self.event_from(data)
        except (AttributeError, TypeError, ValueError, ArithmeticError) as exc:
            raise MalformedWebhookPayload(self.name, str(exc) or type(exc).__name__) from exc

    @abstractmethod
    def event_from(self, data: dict) -> WebhookEvent:
        """Map a decoded provider event onto a WebhookEvent."""
        ...
