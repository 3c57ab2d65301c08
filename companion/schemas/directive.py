"""Deploy directive schemas.

The model embeds a fenced JSON block in its reply. On the wire ``code`` is a
bare string or an object of file name to content; internally it becomes one
of two explicitly tagged variants so downstream code never sniffs shapes.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# Fence markers around the directive block
FENCE_OPEN = "```DEPLOY_CONFIG"
FENCE_CLOSE = "```"


class SingleFileCode(BaseModel):
    """A single markup/component file."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    content: str = Field(description="The file content")


class FileSetCode(BaseModel):
    """A named set of files keyed by relative path."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["files"] = "files"
    files: dict[str, str] = Field(description="Relative path to file content")


DirectiveCode = Annotated[SingleFileCode | FileSetCode, Field(discriminator="kind")]


class DeployDirective(BaseModel):
    """A validated instruction to deploy generated code.

    Only ``companion.directive.finalizer.parse_directive_payload`` builds
    these.
    """

    model_config = ConfigDict(frozen=True)

    should_deploy: bool = Field(description="Whether the model asked for a deployment")
    project_name: str = Field(description="Hosting-safe project slug")
    code: DirectiveCode = Field(description="The code to deploy")

    def wire_code(self) -> str | dict[str, str]:
        """Return ``code`` in the untagged shape used on the wire."""
        if isinstance(self.code, SingleFileCode):
            return self.code.content
        return dict(self.code.files)
