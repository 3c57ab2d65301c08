"""Abstract base class for generation providers.

The orchestrator talks to the generation service only through this
interface, so tests can inject a fake provider that replays fragments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from companion.schemas.config import ModelConfig
from companion.schemas.streaming import StreamChunk


class GenerationProvider(ABC):
    """Abstract interface for a conversational text generator."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    # ── Identity ──────────────────────────────────────────────

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def display_name(self) -> str:
        """Human-friendly model name for CLI output."""
        return self._config.display_name

    @property
    def api_key_env(self) -> str:
        """Environment variable that must hold the provider key."""
        return self._config.api_key_env

    @property
    def config(self) -> ModelConfig:
        """The full ModelConfig backing this provider."""
        return self._config

    # ── Core interface ────────────────────────────────────────

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the provider cannot be called.

        No-op by default; providers that need credentials override it.
        """

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str,
        *,
        timeout: int | None = None,
    ) -> str:
        """Send a completion request and return the full response text.

        Args:
            messages: Conversation messages in OpenAI format.
            system: System prompt for this call.
            timeout: Timeout in seconds (None = config default).

        Raises:
            GenerationError: If the call fails after all retries.
        """

    async def stream(
        self,
        messages: list[dict[str, str]],
        system: str,
        *,
        timeout: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Yield StreamChunks, ending with one whose ``is_complete`` is True.

        Default implementation falls back to complete() and yields the whole
        response as a single fragment. Providers that support streaming
        should override this method.
        """
        content = await self.complete(messages, system, timeout=timeout)
        yield StreamChunk(delta=content)
        yield StreamChunk(is_complete=True)
