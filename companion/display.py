"""Rich live view of a chat turn.

Subscribes to a TurnEventEmitter and redraws a small layout: the
conversational text as it streams, a syntax-highlighted preview of the
code the model is writing, and the deployment status line.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from companion.events import EventListener, EventType, TurnEvent
from companion.schemas.deployment import Phase

_STATUS_MARKUP: dict[str, str] = {
    Phase.IDLE: "[dim]○ idle[/dim]",
    Phase.GENERATING: "[bold cyan]◉ generating[/bold cyan]",
    Phase.DEPLOYING: "[bold yellow]◉ deploying[/bold yellow]",
    Phase.COMPLETE: "[bold green]● live[/bold green]",
    Phase.ERROR: "[bold red]✗ error[/bold red]",
}

_LEXERS: dict[str, str] = {
    "tsx": "tsx",
    "ts": "typescript",
    "jsx": "jsx",
    "js": "javascript",
    "css": "css",
    "html": "html",
    "json": "json",
}


def _lexer_for(path: str | None, text: str) -> str:
    if path and "." in path:
        return _LEXERS.get(path.rsplit(".", 1)[1].lower(), "text")
    return "tsx" if "use client" in text or "className=" in text else "html"


class TurnDisplay:
    """Live terminal rendering of one turn.

    Usage:
        display = TurnDisplay(console)
        emitter.add_listener(display.create_listener())
        with display:
            await orchestrator.run_turn(...)
    """

    def __init__(self, console: Console, *, preview_lines: int = 18) -> None:
        self._console = console
        self._preview_lines = preview_lines
        self._message = ""
        self._preview = ""
        self._preview_path: str | None = None
        self._status = Phase.IDLE
        self._detail = ""
        self._live: Live | None = None

    def __enter__(self) -> TurnDisplay:
        self._live = Live(
            self.render(), console=self._console, refresh_per_second=12, transient=True
        )
        self._live.__enter__()
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._live is not None:
            self._live.__exit__(*exc)
            self._live = None

    def create_listener(self) -> EventListener:
        """Return an event listener callback for TurnEventEmitter."""

        def on_event(event: TurnEvent) -> None:
            self.handle(event)
            if self._live is not None:
                self._live.update(self.render())

        return on_event

    def handle(self, event: TurnEvent) -> None:
        """Fold one event into the display state."""
        data = event.data
        if event.type == EventType.TEXT_DELTA:
            self._message = data.get("message", "")
        elif event.type == EventType.PARTIAL_CODE and data.get("presentable"):
            self._preview = data.get("partialCode", "")
            self._preview_path = data.get("path")
        elif event.type == EventType.MESSAGE_COMPLETED:
            self._message = data.get("message", self._message)
        elif event.type == EventType.STATUS_CHANGED:
            self._status = Phase(data.get("status", Phase.IDLE))
            self._detail = data.get("url") or data.get("error") or ""
        elif event.type == EventType.DEPLOYMENT_POLLED:
            self._detail = f"{data.get('readyState')} (check {data.get('attempt')})"

    def render(self) -> RenderableType:
        parts: list[RenderableType] = []
        if self._message:
            parts.append(Text(self._message))
        if self._preview:
            tail = "\n".join(self._preview.splitlines()[-self._preview_lines :])
            parts.append(
                Panel(
                    Syntax(tail, _lexer_for(self._preview_path, self._preview), theme="monokai"),
                    title=f"[bold]{self._preview_path or 'preview'}[/bold]",
                    border_style="cyan",
                )
            )
        status = Text.from_markup(_STATUS_MARKUP[self._status])
        if self._detail:
            status.append(f"  {self._detail}", style="dim")
        parts.append(status)
        return Group(*parts)
