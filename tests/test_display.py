"""Tests for companion.display — TurnDisplay rendering."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from companion.display import TurnDisplay, _lexer_for
from companion.events import EventType, TurnEvent, TurnEventEmitter


def _console() -> Console:
    return Console(file=io.StringIO(), width=100, record=True, color_system=None)


def _render(display: TurnDisplay) -> str:
    console = _console()
    console.print(display.render())
    return console.export_text()


class TestTurnDisplay:
    def test_initial_state_idle(self):
        assert "idle" in _render(TurnDisplay(_console()))

    def test_message_and_preview(self):
        display = TurnDisplay(_console())
        display.handle(TurnEvent(type=EventType.TEXT_DELTA, data={"message": "Building it!"}))
        display.handle(
            TurnEvent(
                type=EventType.PARTIAL_CODE,
                data={"partialCode": "<h1>Hello</h1>", "path": "page.tsx", "presentable": True},
            )
        )
        text = _render(display)
        assert "Building it!" in text
        assert "<h1>Hello</h1>" in text
        assert "page.tsx" in text

    def test_unpresentable_preview_skipped(self):
        display = TurnDisplay(_console())
        display.handle(
            TurnEvent(
                type=EventType.PARTIAL_CODE,
                data={"partialCode": "'use cli", "path": None, "presentable": False},
            )
        )
        assert "use cli" not in _render(display)

    def test_status_with_url(self):
        display = TurnDisplay(_console())
        display.handle(
            TurnEvent(
                type=EventType.STATUS_CHANGED,
                data={"status": "complete", "url": "https://x.vercel.app", "error": None},
            )
        )
        text = _render(display)
        assert "live" in text
        assert "https://x.vercel.app" in text

    def test_poll_progress(self):
        display = TurnDisplay(_console())
        display.handle(
            TurnEvent(type=EventType.DEPLOYMENT_POLLED, data={"readyState": "BUILDING", "attempt": 3})
        )
        assert "BUILDING (check 3)" in _render(display)

    def test_preview_tail_only(self):
        display = TurnDisplay(_console(), preview_lines=2)
        code = "\n".join(f"<p>line {i}</p>" for i in range(10))
        display.handle(
            TurnEvent(type=EventType.PARTIAL_CODE, data={"partialCode": code, "presentable": True})
        )
        text = _render(display)
        assert "line 9" in text
        assert "line 0" not in text

    @pytest.mark.asyncio
    async def test_listener_inside_live(self):
        emitter = TurnEventEmitter()
        display = TurnDisplay(_console())
        emitter.add_listener(display.create_listener())
        with display:
            await emitter.emit(EventType.TEXT_DELTA, delta="Hi", message="Hi")
        assert "Hi" in _render(display)


class TestLexer:
    @pytest.mark.parametrize(
        ("path", "text", "lexer"),
        [
            ("page.tsx", "", "tsx"),
            ("globals.css", "", "css"),
            ("README", "", "html"),
            (None, "'use client'", "tsx"),
            (None, "<!DOCTYPE html>", "html"),
            ("notes.txt", "", "text"),
        ],
    )
    def test_lexer_for(self, path, text, lexer):
        assert _lexer_for(path, text) == lexer
