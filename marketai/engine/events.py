"""Best-effort event publishing for decision-cycle outcomes."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


EVENT_TYPES = (
    "agent_thinking",
    "agent_decision",
    "trade_rejected",
    "trade_executed",
    "trade_failed",
)


class Event(BaseModel):
    """One published event."""

    type: str = Field(..., description="Event type")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")
    timestamp: datetime = Field(default_factory=datetime.now, description="Publish time")

    model_config = {"frozen": True}


class EventSink(ABC):
    """Receives engine events. Publishing must never block or raise."""

    @abstractmethod
    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish one event.

        Args:
            event_type: One of EVENT_TYPES.
            payload: JSON-friendly event data.
        """
        pass


class EventBus(EventSink):
    """In-process event sink backed by a bounded asyncio queue.

    Events that arrive while the queue is full are dropped with a
    warning; a slow consumer never stalls a decision cycle.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        event = Event(type=event_type, data=payload)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Event queue full, dropped %s event", event_type)

    async def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Wait for the next event.

        Args:
            timeout: Seconds to wait. None waits forever.

        Returns:
            The next event, or None if the timeout expired.
        """
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def drain(self) -> list[Event]:
        """Return every queued event without waiting."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def qsize(self) -> int:
        return self._queue.qsize()
