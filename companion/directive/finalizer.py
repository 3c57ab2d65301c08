"""Authoritative parse of a completed deploy directive.

Runs once the stream has ended (or on the full response in non-streaming
mode). A missing, malformed or invalid block is never an error: the turn
degrades to a plain conversational message so the user still sees the
reply.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from companion.schemas.chat import ChatReply
from companion.schemas.directive import (
    FENCE_OPEN,
    DeployDirective,
    FileSetCode,
    SingleFileCode,
)

logger = logging.getLogger(__name__)

# Everything between the fence-open marker and the next closing fence
_BLOCK_RE = re.compile(re.escape(FENCE_OPEN) + r"\s*([\s\S]*?)```")

DEFAULT_MESSAGE = "Building your app now!"
DEFAULT_PROJECT_NAME = "my-app"

# Hosting project names: lowercase letters, digits, '.', '_', '-'; max 100
_NAME_INVALID_RE = re.compile(r"[^a-z0-9._-]+")
_NAME_MAX_LEN = 100


class _DirectivePayload(BaseModel):
    """Wire shape of the JSON inside the fence."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    should_deploy: StrictBool = Field(alias="shouldDeploy")
    project_name: str | None = Field(default=None, alias="projectName")
    code: str | dict[str, str]


def normalize_project_name(name: str | None, default: str = DEFAULT_PROJECT_NAME) -> str:
    """Turn a free-form project name into a hosting-safe slug.

    >>> normalize_project_name("Bean There Coffee!")
    'bean-there-coffee'
    """
    slug = _NAME_INVALID_RE.sub("-", (name or "").strip().lower())
    slug = re.sub(r"-{2,}", "-", slug).strip("-.")[:_NAME_MAX_LEN].rstrip("-.")
    return slug or default


def parse_directive_payload(
    data: Any, default_project_name: str = DEFAULT_PROJECT_NAME
) -> DeployDirective:
    """Validate a decoded directive payload and build a DeployDirective.

    This is the only constructor of DeployDirective in the package.

    Raises:
        ValidationError: If the payload does not match the wire contract.
    """
    payload = _DirectivePayload.model_validate(data)
    if isinstance(payload.code, str):
        code: SingleFileCode | FileSetCode = SingleFileCode(content=payload.code)
    else:
        code = FileSetCode(files=payload.code)
    return DeployDirective(
        should_deploy=payload.should_deploy,
        project_name=normalize_project_name(payload.project_name, default_project_name),
        code=code,
    )


def finalize_directive(
    text: str,
    *,
    fallback_message: str = DEFAULT_MESSAGE,
    default_project_name: str = DEFAULT_PROJECT_NAME,
) -> ChatReply:
    """Split a full response into its visible message and its directive.

    Args:
        text: The complete response text.
        fallback_message: Visible message when the reply held only the block.
        default_project_name: Project slug when the directive names none.

    Returns:
        A ChatReply. ``should_deploy`` is False and ``code`` None whenever
        the block is absent or unusable; the message is then the text
        unchanged.
    """
    match = _BLOCK_RE.search(text)
    if not match:
        return ChatReply(message=text, should_deploy=False)

    try:
        directive = parse_directive_payload(
            json.loads(match.group(1)), default_project_name
        )
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Failed to parse deploy config: %s", _first_line(e))
        return ChatReply(message=text, should_deploy=False)

    message = (text[: match.start()] + text[match.end() :]).strip()
    return ChatReply(
        message=message or fallback_message,
        should_deploy=directive.should_deploy,
        project_name=directive.project_name,
        code=directive.wire_code(),
        directive=directive,
    )


def _first_line(error: Exception) -> str:
    return str(error).splitlines()[0] if str(error) else type(error).__name__
