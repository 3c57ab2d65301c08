"""Generation provider layer.

All model calls go through a GenerationProvider; LiteLLMProvider is the
production implementation.
"""

from companion.providers.base import GenerationProvider
from companion.providers.litellm_provider import LiteLLMProvider

__all__ = ["GenerationProvider", "LiteLLMProvider"]
