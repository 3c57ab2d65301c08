"""Code Companion schema definitions.

All Pydantic v2 models shared by the stream reader, directive parsing,
deployment and surfaces.
"""

from companion.schemas.chat import ChatMessage, ChatReply, Role, TurnResult
from companion.schemas.config import (
    ChatConfig,
    CompanionConfig,
    DeployConfig,
    ModelConfig,
    PollPolicy,
    ProjectTemplate,
)
from companion.schemas.deployment import (
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    FailureKind,
    Phase,
    PollOutcome,
    PollResult,
    ReadyState,
)
from companion.schemas.directive import (
    FENCE_CLOSE,
    FENCE_OPEN,
    DeployDirective,
    DirectiveCode,
    FileSetCode,
    SingleFileCode,
)
from companion.schemas.streaming import PartialCode, StreamChunk

__all__ = [
    "FENCE_CLOSE",
    "FENCE_OPEN",
    "ChatConfig",
    "ChatMessage",
    "ChatReply",
    "CompanionConfig",
    "DeployConfig",
    "DeployDirective",
    "DeploymentRecord",
    "DeploymentResult",
    "DeploymentStatus",
    "DirectiveCode",
    "FailureKind",
    "FileSetCode",
    "ModelConfig",
    "PartialCode",
    "Phase",
    "PollOutcome",
    "PollPolicy",
    "PollResult",
    "ProjectTemplate",
    "ReadyState",
    "Role",
    "SingleFileCode",
    "StreamChunk",
    "TurnResult",
]
