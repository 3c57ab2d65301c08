"""Turn event emitter for the presentation layer.

Every observable milestone of a chat turn is published as a TurnEvent:
streamed text, live code previews, the finalized reply, and deployment
status transitions. The CLI display, the SSE endpoint and tests all
subscribe the same way.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of turn events."""

    TURN_STARTED = "turn_started"
    TEXT_DELTA = "text_delta"
    PARTIAL_CODE = "partial_code"
    MESSAGE_COMPLETED = "message_completed"
    STATUS_CHANGED = "status_changed"
    DEPLOYMENT_SUBMITTED = "deployment_submitted"
    DEPLOYMENT_POLLED = "deployment_polled"
    TURN_COMPLETED = "turn_completed"
    ERROR = "error"


class TurnEvent(BaseModel):
    """A single turn event."""

    type: EventType = Field(description="Event type")
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp when the event occurred",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Payload; keys depend on the event type",
    )


# Type alias for event listener callbacks
EventListener = Callable[[TurnEvent], Any]


class TurnEventEmitter:
    """Broadcasts turn events to registered listeners.

    Listeners can be sync or async callables. One emitter belongs to one
    turn orchestrator; nothing is shared between turns.
    """

    def __init__(self, *, keep_history: bool = True) -> None:
        self._listeners: list[EventListener] = []
        self._history: list[TurnEvent] = []
        self._keep_history = keep_history

    @property
    def history(self) -> list[TurnEvent]:
        """All events emitted so far."""
        return list(self._history)

    def add_listener(self, listener: EventListener) -> None:
        """Register a listener to receive turn events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        self._listeners = [ln for ln in self._listeners if ln is not listener]

    async def emit(self, event_type: EventType, **data: Any) -> None:
        """Emit a turn event to all registered listeners.

        Sync listeners are called directly; async listeners are awaited.
        Listener exceptions are logged but never propagate.
        """
        event = TurnEvent(type=event_type, data=data)
        if self._keep_history:
            self._history.append(event)

        for listener in self._listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Event listener error for %s", event_type)
