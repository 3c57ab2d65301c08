"""Chat turn schemas.

ChatReply serializes with the camelCase keys the web client expects
(``shouldDeploy``, ``projectName``); use ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from companion.schemas.deployment import DeploymentResult, DeploymentStatus
from companion.schemas.directive import DeployDirective


class Role(StrEnum):
    """Conversation roles accepted from the client."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One prior message in the conversation."""

    role: Role = Field(description="Who wrote the message")
    content: str = Field(description="Message text")


class ChatReply(BaseModel):
    """The finalized assistant reply for one turn."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(description="Visible message text, directive block removed")
    should_deploy: bool = Field(
        default=False, alias="shouldDeploy", description="Whether to deploy"
    )
    project_name: str | None = Field(
        default=None, alias="projectName", description="Project slug when present"
    )
    code: str | dict[str, str] | None = Field(
        default=None, description="Directive code in wire shape when present"
    )
    directive: DeployDirective | None = Field(
        default=None, exclude=True, description="Validated directive, if any"
    )

    @property
    def deployable(self) -> DeployDirective | None:
        """The directive to submit, only when the model asked to deploy."""
        if self.directive is not None and self.directive.should_deploy:
            return self.directive
        return None


class TurnResult(BaseModel):
    """Everything one orchestrated turn produced."""

    reply: ChatReply | None = Field(default=None, description="Finalized reply")
    deployment: DeploymentResult | None = Field(
        default=None, description="Deployment outcome when one was attempted"
    )
    status: DeploymentStatus = Field(
        default_factory=DeploymentStatus, description="Final caller-facing status"
    )
    follow_up: str | None = Field(
        default=None, description="Extra assistant message after a live deployment"
    )
    cancelled: bool = Field(default=False, description="The turn was cancelled")
