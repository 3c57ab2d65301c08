"""FastAPI app exposing chat and deploy over HTTP.

Endpoints:
    POST /api/chat         one non-streaming turn, returns the reply JSON
    POST /api/chat/stream  one turn as server-sent turn events, deploying
                           when the model asks to
    POST /api/deploy       deploy ``{code, projectName}`` and wait for it

Requires the 'server' optional dependency group:
    pip install code-companion[server]
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from companion.deploy.client import VercelClient
from companion.deploy.service import TRANSPORT_FAILED, DeploymentService
from companion.directive.finalizer import parse_directive_payload
from companion.errors import CompanionError, ConfigurationError, EmptyResponseError
from companion.events import TurnEvent, TurnEventEmitter
from companion.orchestrator import GENERATION_FAILED, TurnOrchestrator
from companion.providers.base import GenerationProvider
from companion.providers.litellm_provider import LiteLLMProvider
from companion.schemas.chat import ChatMessage
from companion.schemas.config import CompanionConfig, DeployConfig, ModelConfig

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ModelConfig], GenerationProvider]
DeployerFactory = Callable[[DeployConfig], DeploymentService]


class ChatRequest(BaseModel):
    """Body of the chat endpoints."""

    messages: list[ChatMessage] = Field(description="Conversation so far")


class DeployRequest(BaseModel):
    """Body of the deploy endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    code: str | dict[str, str] = Field(description="Single page or path -> contents")
    project_name: str | None = Field(default=None, alias="projectName")


def _default_deployer(config: DeployConfig) -> DeploymentService:
    return DeploymentService(VercelClient.from_config(config), config)


def _sse(event: TurnEvent) -> str:
    payload = json.dumps(event.model_dump(mode="json"), default=str)
    return f"event: {event.type}\ndata: {payload}\n\n"


def create_app(
    config: CompanionConfig | None = None,
    *,
    provider_factory: ProviderFactory = LiteLLMProvider,
    deployer_factory: DeployerFactory = _default_deployer,
) -> Any:
    """Create and configure the FastAPI application.

    FastAPI is imported inside this function so the module can be imported
    without the server extra installed. The factories are called once per
    request, so tests can pass fakes.
    """
    try:
        from fastapi import FastAPI
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse, StreamingResponse
    except ImportError as exc:
        raise ImportError(
            "The HTTP server requires extra dependencies. "
            "Install with: pip install code-companion[server]"
        ) from exc

    settings = config or CompanionConfig()

    app = FastAPI(
        title="Code Companion",
        description="Chat your way to a deployed web app",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Streamed turns outlive a disconnected client until they see the cancel
    running_turns: set[asyncio.Task[None]] = set()

    def _error(message: str, status_code: int = 500) -> JSONResponse:
        return JSONResponse({"error": message}, status_code=status_code)

    # ── Chat ──────────────────────────────────────────────────

    @app.post("/api/chat")
    async def chat(body: ChatRequest) -> Any:
        orchestrator = TurnOrchestrator(provider_factory(settings.model), config=settings)
        try:
            result = await orchestrator.run_turn(body.messages, stream=False)
        except ConfigurationError as e:
            return _error(str(e))
        except EmptyResponseError as e:
            return _error(str(e))
        except CompanionError:
            return _error(GENERATION_FAILED)
        return result.reply.model_dump(by_alias=True, exclude_none=True)

    @app.post("/api/chat/stream")
    async def chat_stream(body: ChatRequest) -> Any:
        provider = provider_factory(settings.model)
        try:
            provider.ensure_configured()
        except ConfigurationError as e:
            return _error(str(e))

        queue: asyncio.Queue[TurnEvent | None] = asyncio.Queue()
        emitter = TurnEventEmitter(keep_history=False)
        emitter.add_listener(queue.put_nowait)
        cancel = asyncio.Event()

        async def _run() -> None:
            deployer = deployer_factory(settings.deploy)
            orchestrator = TurnOrchestrator(
                provider, deployer, emitter=emitter, config=settings
            )
            try:
                await orchestrator.run_turn(body.messages, stream=True, cancel=cancel)
            except CompanionError as e:
                # The orchestrator already published an error event
                logger.error("Streamed turn failed: %s", e)
            finally:
                await deployer.client.aclose()
                queue.put_nowait(None)

        async def _events() -> AsyncIterator[str]:
            task = asyncio.create_task(_run())
            running_turns.add(task)
            task.add_done_callback(running_turns.discard)
            try:
                while (event := await queue.get()) is not None:
                    yield _sse(event)
            finally:
                # Client gone or stream finished; a running turn winds down
                cancel.set()

        return StreamingResponse(_events(), media_type="text/event-stream")

    # ── Deploy ────────────────────────────────────────────────

    @app.post("/api/deploy")
    async def deploy(body: DeployRequest) -> Any:
        try:
            directive = parse_directive_payload(
                {
                    "shouldDeploy": True,
                    "projectName": body.project_name,
                    "code": body.code,
                },
                settings.deploy.default_project_name,
            )
        except ValidationError:
            return _error("No code provided", 400)

        service = deployer_factory(settings.deploy)
        try:
            result = await service.deploy(directive)
        except Exception:
            logger.exception("Deploy error")
            return _error(TRANSPORT_FAILED)
        finally:
            await service.client.aclose()

        if not result.success:
            return _error(result.error or TRANSPORT_FAILED)
        return result.model_dump(
            by_alias=True, exclude_none=True, include={"success", "url", "deployment_id", "note"}
        )

    return app
