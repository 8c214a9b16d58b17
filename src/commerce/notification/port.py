"""Notification dispatcher port.

Delivery (email, SMS, push) belongs to an external service. The core only
hands it a recipient, a topic and a context dict.
"""

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    @abstractmethod
    def dispatch(self, recipient_id: str, topic: str, context: dict) -> None:
        """Hand a notification to the delivery service. May raise on failure."""
        ...
