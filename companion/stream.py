"""Token stream reader.

Drains a provider's StreamChunks into the running text for one turn and
hands the running text (never the bare fragment) to the directive scanner,
so fragments split mid-marker or mid-escape decode correctly.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, Field

from companion.directive.scanner import DirectiveScanner
from companion.schemas.streaming import PartialCode, StreamChunk

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Any]
PartialCallback = Callable[[PartialCode], Any]


class StreamReadResult(BaseModel):
    """What a drained stream produced."""

    text: str = Field(description="Full running text")
    completed: bool = Field(description="The end-of-stream marker was received")
    cancelled: bool = Field(default=False, description="Reading stopped on request")
    chunks: int = Field(default=0, ge=0, description="Fragments received")


class TokenStreamReader:
    """Accumulates one turn's fragments and feeds the directive scanner.

    Callbacks may be sync or async. Errors from the scanner or callbacks are
    logged and never stop the stream from being drained.
    """

    def __init__(
        self,
        scanner: DirectiveScanner | None = None,
        *,
        on_delta: DeltaCallback | None = None,
        on_partial: PartialCallback | None = None,
    ) -> None:
        self._scanner = scanner or DirectiveScanner()
        self._on_delta = on_delta
        self._on_partial = on_partial
        self._text = ""

    @property
    def running_text(self) -> str:
        """Everything received so far."""
        return self._text

    @property
    def scanner(self) -> DirectiveScanner:
        return self._scanner

    @property
    def partial(self) -> PartialCode | None:
        """Latest live decode of the directive code, if any."""
        return self._scanner.snapshot

    async def drain(
        self,
        chunks: AsyncIterator[StreamChunk],
        cancel: asyncio.Event | None = None,
    ) -> StreamReadResult:
        """Read chunks until the end-of-stream marker or cancellation.

        The underlying iterator is always closed before returning, which
        releases the provider connection.
        """
        iterator = aiter(chunks)
        completed = False
        cancelled = False
        count = 0

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    break
                try:
                    chunk = await self._next(iterator, cancel)
                except StopAsyncIteration:
                    logger.warning(
                        "Stream ended without an end-of-stream marker after %d chunks",
                        count,
                    )
                    break
                if chunk is None:
                    cancelled = True
                    break

                count += 1
                if chunk.delta:
                    await self._append(chunk.delta)
                if chunk.is_complete:
                    completed = True
                    break
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        if cancelled:
            logger.info("Stream reading cancelled after %d chunks", count)
        return StreamReadResult(
            text=self._text, completed=completed, cancelled=cancelled, chunks=count
        )

    async def _next(
        self, iterator: AsyncIterator[StreamChunk], cancel: asyncio.Event | None
    ) -> StreamChunk | None:
        """Await the next chunk, or None if cancel fires first."""
        if cancel is None:
            return await anext(iterator)

        next_task = asyncio.ensure_future(anext(iterator))
        cancel_task = asyncio.ensure_future(cancel.wait())
        done, _ = await asyncio.wait(
            {next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if next_task in done:
            cancel_task.cancel()
            return next_task.result()

        next_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
            await next_task
        return None

    async def _append(self, delta: str) -> None:
        self._text += delta

        snapshot = None
        try:
            snapshot = self._scanner.update(self._text)
        except Exception:
            logger.exception("Directive scan failed; continuing to drain the stream")

        await self._notify(self._on_delta, delta)
        if snapshot is not None:
            await self._notify(self._on_partial, snapshot)

    @staticmethod
    async def _notify(callback: Callable[[Any], Any] | None, value: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(value)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Stream callback error")
