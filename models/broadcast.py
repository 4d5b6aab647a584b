"""Outbound publish sinks for simulation progress and completion payloads."""

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PROGRESS_TOPIC = "simulation_progress"
COMPLETED_TOPIC = "simulation_completed"


class ProgressBroadcaster(Protocol):
    """Anything the engine can publish progress and report payloads to.

    Implementations may raise; the engine logs and ignores publish errors.
    """

    def publish(self, topic: str, payload: BaseModel) -> None: ...


class BroadcastMessage(BaseModel):
    """One published payload with its topic and publish time."""

    topic: str
    payload: dict
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class InMemoryBroadcaster:
    """Keeps the most recent published messages in a bounded buffer.

    Args:
        history_size: Maximum number of messages retained.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._messages: deque[BroadcastMessage] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: BaseModel) -> None:
        message = BroadcastMessage(topic=topic, payload=payload.model_dump(mode="json"))
        with self._lock:
            self._messages.append(message)
        logger.debug(f"Published {topic} message")

    def history(self, topic: Optional[str] = None) -> list[BroadcastMessage]:
        """Return retained messages oldest first, optionally filtered by topic."""
        with self._lock:
            messages = list(self._messages)
        if topic is None:
            return messages
        return [m for m in messages if m.topic == topic]

    def latest(self, topic: Optional[str] = None) -> Optional[BroadcastMessage]:
        """Return the most recent message, optionally for one topic."""
        messages = self.history(topic)
        return messages[-1] if messages else None

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
