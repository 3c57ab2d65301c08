"""Streaming schemas for real-time token delivery.

StreamChunk carries one fragment from the generation provider; PartialCode
is the scanner's best-effort view of the code value still being written.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StreamChunk(BaseModel):
    """A single chunk of streaming output from a model."""

    delta: str = Field(default="", description="New text in this chunk")
    is_complete: bool = Field(
        default=False, description="True on the end-of-stream marker chunk"
    )


class PartialCode(BaseModel):
    """A not-yet-final decode of the directive's ``code`` value.

    For a single-file directive ``text`` is the whole decoded value so far.
    For a file map ``text`` is the file currently being written (``path``)
    and ``files`` holds every file decoded so far, including that one.
    Snapshots are previews only and must never be deployed.
    """

    text: str = Field(default="", description="Decoded value currently being written")
    path: str | None = Field(
        default=None, description="File name being written (file-map shape only)"
    )
    files: dict[str, str] = Field(
        default_factory=dict, description="All files decoded so far (file-map shape only)"
    )
    complete: bool = Field(
        default=False, description="True once the code value's closing token was seen"
    )

    @property
    def presentable(self) -> bool:
        """Whether the snapshot looks like markup worth previewing yet."""
        return "<" in self.text
