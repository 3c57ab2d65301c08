"""Tests for companion.events — TurnEventEmitter."""

from __future__ import annotations

import pytest

from companion.events import EventType, TurnEvent, TurnEventEmitter


class TestTurnEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        emitter = TurnEventEmitter()
        sync_seen: list[TurnEvent] = []
        async_seen: list[TurnEvent] = []

        async def async_listener(event: TurnEvent) -> None:
            async_seen.append(event)

        emitter.add_listener(sync_seen.append)
        emitter.add_listener(async_listener)
        await emitter.emit(EventType.TEXT_DELTA, delta="hi", message="hi")

        assert len(sync_seen) == len(async_seen) == 1
        assert sync_seen[0].type == EventType.TEXT_DELTA
        assert sync_seen[0].data == {"delta": "hi", "message": "hi"}

    @pytest.mark.asyncio
    async def test_history(self):
        emitter = TurnEventEmitter()
        await emitter.emit(EventType.TURN_STARTED)
        await emitter.emit(EventType.TURN_COMPLETED)
        assert [e.type for e in emitter.history] == [
            EventType.TURN_STARTED,
            EventType.TURN_COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_history_disabled(self):
        emitter = TurnEventEmitter(keep_history=False)
        await emitter.emit(EventType.TURN_STARTED)
        assert emitter.history == []

    @pytest.mark.asyncio
    async def test_listener_error_isolated(self, caplog):
        emitter = TurnEventEmitter()
        seen: list[TurnEvent] = []

        def broken(event: TurnEvent) -> None:
            raise RuntimeError("listener down")

        emitter.add_listener(broken)
        emitter.add_listener(seen.append)
        with caplog.at_level("ERROR", logger="companion.events"):
            await emitter.emit(EventType.ERROR, error="x")
        assert len(seen) == 1
        assert "Event listener error" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_listener(self):
        emitter = TurnEventEmitter()
        seen: list[TurnEvent] = []
        listener = seen.append
        emitter.add_listener(listener)
        emitter.remove_listener(listener)
        await emitter.emit(EventType.TURN_STARTED)
        assert seen == []

    def test_event_serializes(self):
        event = TurnEvent(type=EventType.STATUS_CHANGED, data={"status": "deploying"})
        dumped = event.model_dump(mode="json")
        assert dumped["type"] == "status_changed"
        assert dumped["data"] == {"status": "deploying"}
        assert isinstance(dumped["timestamp"], float)
