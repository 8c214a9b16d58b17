"""In-memory dispatcher that records notifications for test assertions."""

from commerce.notification.port import NotificationDispatcher


class NotificationDeliveryError(Exception):
    pass


class FakeDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed

    def dispatch(self, recipient_id: str, topic: str, context: dict) -> None:
        if not self.should_succeed:
            raise NotificationDeliveryError(f"Could not deliver {topic} to {recipient_id}")
        self.sent.append({"recipient_id": recipient_id, "topic": topic, "context": context})

    def topics_for(self, recipient_id: str) -> list[str]:
        return [n["topic"] for n in self.sent if n["recipient_id"] == recipient_id]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
