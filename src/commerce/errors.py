"""Business error taxonomy for the commerce core.

Input and rule violations extend Protean's ``ValidationError`` so they
carry field-keyed messages; illegal state changes extend
``InvalidOperationError``. ``ConsistencyViolation`` extends
neither: it marks a broken invariant and aborts the Unit of Work.
"""

from protean.exceptions import InvalidOperationError, ValidationError


class InsufficientStock(ValidationError):
    """Requested quantity exceeds available stock."""

    def __init__(self, available: int, requested: int, product_id: str | None = None, variant_id: str | None = None):
        self.available = available
        self.requested = requested
        self.product_id = product_id
        self.variant_id = variant_id
        super().__init__({"quantity": [f"Only {available} items available"]})


class InvalidAmount(ValidationError):
    """Monetary amount is out of range for the operation."""

    def __init__(self, message: str, field: str = "amount"):
        super().__init__({field: [message]})


class InvalidTransition(InvalidOperationError):
    """Status change not allowed by the state machine."""

    def __init__(self, current: str, target: str, subject: str = "Order"):
        self.current = current
        self.target = target
        super().__init__(f"{subject} cannot move from {current} to {target}")


class StalePaymentSignal(InvalidTransition):
    """Provider signal that contradicts the payment's recorded state."""

    def __init__(self, current: str, signal: str):
        self.signal = signal
        super().__init__(current, signal, subject="Payment")


class Unauthorized(Exception):
    """Actor is authenticated but has no rights over the entity."""

    def __init__(self, message: str = "Not allowed to act on this resource"):
        self.message = message
        super().__init__(message)


class ProviderError(Exception):
    """External payment provider failed or refused the call."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class ProviderTimeout(ProviderError):
    """Provider did not answer within the configured timeout."""


class ConsistencyViolation(Exception):
    """An aggregate invariant would be broken. Never caught by the core."""


class InvalidWebhookSignature(Exception):
    """Webhook payload failed the provider's signature check."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Invalid {provider} webhook signature")


class MalformedWebhookPayload(Exception):
    """A correctly signed webhook body that cannot be read as a provider event."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Unreadable {provider} webhook: {reason}")
