"""Deployment status poller.

A bounded, cancellable retry loop: wait, read status once, stop on a
terminal state, give up after ``max_attempts``. It knows nothing about
HTTP; the status read and the sleep function are injected, so tests drive
it with a fake clock.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from companion.errors import ProviderRejectedError
from companion.schemas.config import PollPolicy
from companion.schemas.deployment import (
    DeploymentRecord,
    PollOutcome,
    PollResult,
    ReadyState,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
StatusReader = Callable[[DeploymentRecord], Awaitable[DeploymentRecord]]
AttemptCallback = Callable[[DeploymentRecord, int], Any]

_TERMINAL_OUTCOMES: dict[ReadyState, PollOutcome] = {
    ReadyState.READY: PollOutcome.READY,
    ReadyState.ERROR: PollOutcome.ERROR,
}


class DeploymentPoller:
    """Polls a deployment until it is terminal, cancelled, or out of attempts.

    Args:
        read_status: Returns the record refreshed from the provider.
        policy: Attempt budget and delays.
        sleep: Awaitable sleep; defaults to asyncio.sleep.
        on_attempt: Called (sync or async) after every successful read with
            the refreshed record and the attempt number.
    """

    def __init__(
        self,
        read_status: StatusReader,
        policy: PollPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        on_attempt: AttemptCallback | None = None,
    ) -> None:
        self._read_status = read_status
        self._policy = policy or PollPolicy()
        self._sleep = sleep
        self._on_attempt = on_attempt

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    async def poll(
        self,
        record: DeploymentRecord,
        cancel: asyncio.Event | None = None,
    ) -> PollResult:
        """Run the poll loop for one deployment.

        Non-2xx status reads count as an attempt and polling continues.
        Transport failures propagate to the caller.

        Returns:
            PollResult whose outcome is READY, ERROR, EXHAUSTED (still not
            terminal after every attempt) or CANCELLED.
        """
        attempts = 0
        for attempt in range(self._policy.max_attempts):
            if await self._wait(self._policy.delay_for(attempt), cancel):
                logger.info("Polling for %s cancelled after %d attempts", record.id, attempts)
                return PollResult(outcome=PollOutcome.CANCELLED, record=record, attempts=attempts)

            attempts = attempt + 1
            try:
                record = await self._read_status(record)
            except ProviderRejectedError as e:
                logger.warning(
                    "Status read %d/%d for %s rejected: %s",
                    attempts, self._policy.max_attempts, record.id, e.message,
                )
                continue

            logger.debug(
                "Deployment %s is %s (attempt %d/%d)",
                record.id, record.ready_state, attempts, self._policy.max_attempts,
            )
            await self._notify(record, attempts)

            outcome = _TERMINAL_OUTCOMES.get(record.ready_state)
            if outcome is not None:
                return PollResult(outcome=outcome, record=record, attempts=attempts)

        logger.info(
            "Deployment %s still %s after %d attempts; returning without waiting",
            record.id, record.ready_state, attempts,
        )
        return PollResult(outcome=PollOutcome.EXHAUSTED, record=record, attempts=attempts)

    async def _wait(self, delay: float, cancel: asyncio.Event | None) -> bool:
        """Sleep for ``delay``; return True if cancelled first."""
        if cancel is None:
            await self._sleep(delay)
            return False
        if cancel.is_set():
            return True

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel.wait())
        done, pending = await asyncio.wait(
            {sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return cancel.is_set()

    async def _notify(self, record: DeploymentRecord, attempt: int) -> None:
        if self._on_attempt is None:
            return
        try:
            result = self._on_attempt(record, attempt)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Poll attempt callback error")
