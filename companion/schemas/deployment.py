"""Deployment lifecycle schemas.

Covers the hosting provider's readiness states, the record the submitter
creates and the poller updates, and the caller-facing status/result shapes.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ReadyState(StrEnum):
    """Hosting provider deployment readiness states."""

    QUEUED = "QUEUED"
    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"

    @classmethod
    def parse(cls, value: object) -> ReadyState | None:
        """Map a raw provider value to a known state, or None if unknown."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


TERMINAL_STATES = frozenset({ReadyState.READY, ReadyState.ERROR})


class DeploymentRecord(BaseModel):
    """A submitted deployment as last seen by the orchestrator."""

    id: str = Field(description="Provider deployment id")
    url: str = Field(description="Public deployment URL (with scheme)")
    ready_state: ReadyState = Field(
        default=ReadyState.QUEUED, description="Last known readiness state"
    )

    @property
    def is_terminal(self) -> bool:
        return self.ready_state in TERMINAL_STATES


class Phase(StrEnum):
    """Caller-facing turn phases."""

    IDLE = "idle"
    GENERATING = "generating"
    DEPLOYING = "deploying"
    COMPLETE = "complete"
    ERROR = "error"


class DeploymentStatus(BaseModel):
    """Externally observable deployment state for one turn."""

    model_config = ConfigDict(frozen=True)

    status: Phase = Field(default=Phase.IDLE, description="Current phase")
    url: str | None = Field(default=None, description="Deployment URL once known")
    error: str | None = Field(default=None, description="Error text when failed")


class FailureKind(StrEnum):
    """Why a deployment did not succeed."""

    CONFIGURATION = "configuration"
    PROVIDER = "provider"
    BUILD = "build"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"


class PollOutcome(StrEnum):
    """How a polling run ended."""

    READY = "ready"
    ERROR = "error"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class PollResult(BaseModel):
    """Outcome of one polling run plus the best-known record."""

    outcome: PollOutcome = Field(description="How polling ended")
    record: DeploymentRecord = Field(description="Record after the last status read")
    attempts: int = Field(ge=0, description="Status reads performed")


class DeploymentResult(BaseModel):
    """Final outcome of a deployment attempt, as returned to the caller.

    ``success`` with a ``note`` means polling ran out before the build
    finished: the URL is known but may not be serving yet.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(description="Whether the deployment is (probably) live")
    url: str | None = Field(default=None, description="Deployment URL")
    deployment_id: str | None = Field(
        default=None, alias="deploymentId", description="Provider deployment id"
    )
    note: str | None = Field(default=None, description="Caveat for qualified success")
    error: str | None = Field(default=None, description="User-facing error text")
    failure: FailureKind | None = Field(default=None, description="Failure category")
