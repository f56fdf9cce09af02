"""Push delivery backends for reward notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Protocol

from loguru import logger


@dataclass(slots=True)
class NotificationPayload:
    """Transport-agnostic push request."""

    identifier: str
    category: str
    title: str
    body: str
    recipient: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class NotificationBackend(Protocol):
    """Hands a payload to the device push transport.

    `scheduled_at` of ``None`` means deliver immediately.
    """

    async def deliver(self, scheduled_at: Optional[datetime], payload: NotificationPayload) -> None:
        ...


class LoggingNotificationBackend:
    """Default backend that records deliveries in the structured log."""

    async def deliver(self, scheduled_at: Optional[datetime], payload: NotificationPayload) -> None:
        logger.info(
            "Push notification dispatched",
            identifier=payload.identifier,
            category=payload.category,
            recipient=payload.recipient,
            scheduled_at=scheduled_at.isoformat() if scheduled_at else None,
        )


@dataclass
class InMemoryNotificationBackend:
    """Test backend storing deliveries in memory."""

    sent_messages: List[tuple[Optional[datetime], NotificationPayload]]

    def __init__(self) -> None:
        self.sent_messages = []

    async def deliver(self, scheduled_at: Optional[datetime], payload: NotificationPayload) -> None:
        self.sent_messages.append((scheduled_at, payload))

    def by_category(self, category: str) -> list[tuple[Optional[datetime], NotificationPayload]]:
        return [entry for entry in self.sent_messages if entry[1].category == category]


__all__ = [
    "InMemoryNotificationBackend",
    "LoggingNotificationBackend",
    "NotificationBackend",
    "NotificationPayload",
]
