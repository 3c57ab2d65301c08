"""Turn orchestrator.

One instance per in-flight user turn. Drives the provider stream through
the token reader and directive scanner, finalizes the reply, and when the
model asked for it, deploys the code and tracks the build. Status
transitions (idle → generating → deploying → complete | error) and live
previews are published on the turn's event emitter.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from companion.deploy.service import DeploymentService
from companion.directive.finalizer import finalize_directive
from companion.errors import CompanionError, EmptyResponseError, GenerationError
from companion.events import EventType, TurnEventEmitter
from companion.prompts import system_prompt
from companion.providers.base import GenerationProvider
from companion.schemas.chat import ChatMessage, ChatReply, TurnResult
from companion.schemas.config import CompanionConfig
from companion.schemas.deployment import (
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    FailureKind,
    Phase,
)
from companion.schemas.streaming import PartialCode
from companion.stream import TokenStreamReader

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Failed to process request"
NO_RESPONSE = "No response from AI"


class TurnOrchestrator:
    """Runs a single chat turn end to end.

    Args:
        provider: Generation provider (injected; tests pass a fake).
        deployer: Deployment service, or None to never deploy.
        emitter: Optional event emitter; when None, events are skipped.
        config: Settings for messages, project defaults and the template.
        system: System prompt override (defaults to the companion prompt).
    """

    def __init__(
        self,
        provider: GenerationProvider,
        deployer: DeploymentService | None = None,
        *,
        emitter: TurnEventEmitter | None = None,
        config: CompanionConfig | None = None,
        system: str | None = None,
    ) -> None:
        self._provider = provider
        self._deployer = deployer
        self._emitter = emitter
        self._config = config or CompanionConfig()
        self._system = system or system_prompt(self._config.deploy.template)
        self._status = DeploymentStatus()
        self._reader: TokenStreamReader | None = None

    @property
    def status(self) -> DeploymentStatus:
        """Current caller-facing status."""
        return self._status

    @property
    def partial(self) -> PartialCode | None:
        """Latest live code preview from the current stream, if any."""
        return self._reader.partial if self._reader else None

    async def run_turn(
        self,
        messages: Sequence[ChatMessage],
        *,
        stream: bool = True,
        cancel: asyncio.Event | None = None,
    ) -> TurnResult:
        """Generate a reply, then deploy it if the model asked to.

        Args:
            messages: The conversation so far, ending with the user's turn.
            stream: Read the reply incrementally (with live previews) or in
                one piece. Both paths finalize identically.
            cancel: Set to stop reading the stream and stop polling.

        Returns:
            TurnResult. Deployment failures are reported in
            ``result.deployment`` and ``result.status``; they never remove
            the reply.

        Raises:
            ConfigurationError: If the provider's API key is missing.
            GenerationError: If the provider fails.
            EmptyResponseError: If the model produced no text.
        """
        self._provider.ensure_configured()
        wire_messages = [m.model_dump(mode="json") for m in messages]

        await self._emit(EventType.TURN_STARTED, stream=stream, model=self._provider.model_id)
        await self._set_status(DeploymentStatus(status=Phase.GENERATING))

        try:
            if stream:
                text, cancelled = await self._read_stream(wire_messages, cancel)
            else:
                text = await self._provider.complete(wire_messages, self._system)
                cancelled = False
        except Exception as e:
            logger.error("Chat error: %s", e)
            await self._set_status(DeploymentStatus(status=Phase.ERROR, error=GENERATION_FAILED))
            await self._emit(EventType.ERROR, stage="generation", error=str(e))
            if isinstance(e, CompanionError):
                raise
            raise GenerationError(str(e)) from e

        if cancelled:
            return await self._finish(TurnResult(cancelled=True), Phase.IDLE)
        if not text.strip():
            logger.error("Model %s returned no content", self._provider.model_id)
            await self._set_status(DeploymentStatus(status=Phase.ERROR, error=NO_RESPONSE))
            await self._emit(EventType.ERROR, stage="generation", error=NO_RESPONSE)
            raise EmptyResponseError(NO_RESPONSE)

        reply = finalize_directive(
            text,
            fallback_message=self._config.chat.fallback_message,
            default_project_name=self._config.deploy.default_project_name,
        )
        await self._emit(EventType.MESSAGE_COMPLETED, **reply.model_dump(by_alias=True))

        directive = reply.deployable
        if directive is None:
            return await self._finish(TurnResult(reply=reply), Phase.IDLE)
        if self._deployer is None:
            logger.info("Model asked to deploy %s but deployment is disabled", directive.project_name)
            return await self._finish(TurnResult(reply=reply), Phase.IDLE)

        await self._set_status(DeploymentStatus(status=Phase.DEPLOYING))
        deployment = await self._deployer.deploy(
            directive,
            cancel=cancel,
            on_submitted=self._on_submitted,
            on_polled=self._on_polled,
        )
        return await self._finish_deployment(reply, deployment)

    async def _read_stream(
        self, messages: list[dict[str, str]], cancel: asyncio.Event | None
    ) -> tuple[str, bool]:
        self._reader = TokenStreamReader(
            on_delta=self._on_delta,
            on_partial=self._on_partial,
        )
        result = await self._reader.drain(
            self._provider.stream(messages, self._system), cancel
        )
        return result.text, result.cancelled

    async def _finish_deployment(
        self, reply: ChatReply, deployment: DeploymentResult
    ) -> TurnResult:
        if deployment.success:
            follow_up = self._config.chat.live_message.format(url=deployment.url)
            result = TurnResult(reply=reply, deployment=deployment, follow_up=follow_up)
            status = DeploymentStatus(status=Phase.COMPLETE, url=deployment.url)
        elif deployment.failure is FailureKind.CANCELLED:
            result = TurnResult(reply=reply, deployment=deployment, cancelled=True)
            status = DeploymentStatus(status=Phase.IDLE, url=deployment.url)
        else:
            result = TurnResult(reply=reply, deployment=deployment)
            status = DeploymentStatus(status=Phase.ERROR, error=deployment.error)
            await self._emit(
                EventType.ERROR,
                stage="deployment",
                error=deployment.error,
                failure=deployment.failure,
            )

        await self._set_status(status)
        result.status = status
        await self._emit(EventType.TURN_COMPLETED, **result.model_dump(mode="json", exclude={"reply"}))
        return result

    async def _finish(self, result: TurnResult, phase: Phase) -> TurnResult:
        status = DeploymentStatus(status=phase)
        await self._set_status(status)
        result.status = status
        await self._emit(EventType.TURN_COMPLETED, **result.model_dump(mode="json", exclude={"reply"}))
        return result

    # ── Event plumbing ────────────────────────────────────────

    async def _set_status(self, status: DeploymentStatus) -> None:
        if status == self._status:
            return
        self._status = status
        await self._emit(EventType.STATUS_CHANGED, **status.model_dump(mode="json"))

    async def _on_delta(self, delta: str) -> None:
        message = ""
        if self._reader is not None:
            message = self._reader.scanner.conversational_text(self._reader.running_text)
        await self._emit(EventType.TEXT_DELTA, delta=delta, message=message)

    async def _on_partial(self, snapshot: PartialCode) -> None:
        await self._emit(
            EventType.PARTIAL_CODE,
            partialCode=snapshot.text,
            path=snapshot.path,
            presentable=snapshot.presentable,
            complete=snapshot.complete,
        )

    async def _on_submitted(self, record: DeploymentRecord) -> None:
        await self._emit(
            EventType.DEPLOYMENT_SUBMITTED,
            deploymentId=record.id,
            url=record.url,
        )

    async def _on_polled(self, record: DeploymentRecord, attempt: int) -> None:
        await self._emit(
            EventType.DEPLOYMENT_POLLED,
            deploymentId=record.id,
            readyState=record.ready_state,
            attempt=attempt,
        )

    async def _emit(self, event_type: EventType, **data: object) -> None:
        if self._emitter is not None:
            await self._emitter.emit(event_type, **data)
