"""LiteLLM adapter implementing the GenerationProvider interface.

Routes chat completions to any provider through LiteLLM's unified API,
with retry and exponential backoff on transient failures. Streaming
responses are re-emitted as StreamChunks followed by an explicit
end-of-stream marker.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from companion.errors import ConfigurationError, GenerationError
from companion.providers.base import GenerationProvider
from companion.schemas.config import ModelConfig
from companion.schemas.streaming import StreamChunk

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


# Substrings of a LiteLLM error message mapped to a short reason
_REASONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("rate", "429"), "rate limit"),
    (("overloaded", "529"), "overloaded"),
    (("timeout",), "timeout"),
    (("503", "unavailable"), "service unavailable"),
    (("500", "internal"), "server error"),
    (("connection",), "connection error"),
)


def _short_error_reason(error: Exception | None) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    if isinstance(error, TimeoutError):
        return "timeout"
    text = str(error).lower()
    for needles, reason in _REASONS:
        if any(needle in text for needle in needles):
            return reason
    return str(error)[:80]


class LiteLLMProvider(GenerationProvider):
    """Generation provider backed by litellm.acompletion()."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._api_key = os.environ.get(config.api_key_env, "")

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the model's API key is not set."""
        if not self._api_key:
            raise ConfigurationError("API key not configured")

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str,
        *,
        timeout: int | None = None,
    ) -> str:
        """Send a non-streaming completion and return the response text."""
        kwargs = self._build_completion_kwargs(messages, system, timeout)
        response = await self._call_with_retry(kwargs)
        return self._extract_content(response)

    async def stream(
        self,
        messages: list[dict[str, str]],
        system: str,
        *,
        timeout: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream the completion as StreamChunks.

        Only opening the stream is retried; a failure mid-stream propagates
        as GenerationError because replaying would duplicate fragments the
        caller already consumed.
        """
        kwargs = self._build_completion_kwargs(messages, system, timeout)
        kwargs["stream"] = True

        response = await self._call_with_retry(kwargs)

        try:
            async for chunk in response:
                delta = ""
                if chunk.choices and chunk.choices[0].delta:
                    delta = chunk.choices[0].delta.content or ""
                if not delta:
                    continue
                yield StreamChunk(delta=delta)
        except (litellm.APIError, litellm.APIConnectionError, TimeoutError) as e:
            raise GenerationError(
                f"Stream from {self._config.model} broke off: {_short_error_reason(e)}"
            ) from e
        finally:
            close = getattr(response, "aclose", None)
            if close is not None:
                await close()

        yield StreamChunk(is_complete=True)

    def _build_completion_kwargs(
        self,
        messages: list[dict[str, str]],
        system: str,
        timeout: int | None,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "max_tokens": self._config.max_tokens,
            "timeout": float(timeout or self._config.timeout),
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        return kwargs

    async def _call_with_retry(self, kwargs: dict):
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Auth and bad-request errors are raised immediately.

        Raises:
            GenerationError: If the call fails for good.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError as e:
                last_error = e
            except litellm.AuthenticationError:
                raise GenerationError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise GenerationError(f"Bad request to {self._config.model}: {e}") from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    _MAX_RETRIES,
                    self._config.display_name,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        raise GenerationError(
            f"Model call to {self._config.model} failed after {_MAX_RETRIES} "
            f"retries: {_short_error_reason(last_error)}"
        ) from last_error

    def _extract_content(self, response) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        return (message.content or "") if message else ""
