"""Exception hierarchy for Code Companion.

Malformed directives are not errors (the finalizer degrades them to plain
messages), so nothing here covers parsing.
"""

from __future__ import annotations


class CompanionError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(CompanionError):
    """Raised when a required credential or setting is missing."""


class GenerationError(CompanionError):
    """Raised when the generation provider fails after all retries."""


class DeploymentError(CompanionError):
    """Base class for failures talking to the hosting provider."""


class ProviderRejectedError(DeploymentError):
    """The hosting API answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DeploymentTransportError(DeploymentError):
    """The hosting API could not be reached or returned an unreadable body."""


class EmptyResponseError(GenerationError):
    """The model finished without producing any text."""
