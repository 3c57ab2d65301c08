"""Incremental scanner for the deploy directive's ``code`` value.

While the model is still writing, the fenced JSON block is invalid: the
code string has no closing quote and the object has no closing brace. The
scanner walks the running text one character at a time, remembering only
where it stopped, whether it is inside a string, whether an escape is
pending, and how deep it is in the JSON nesting. That is enough to find the
top-level ``code`` key and decode its value (a string, or an object of file
name to string) as it grows.

Feeding the same running text, split however the fragments happened to
arrive, always produces the same snapshot.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from companion.schemas.directive import FENCE_OPEN
from companion.schemas.streaming import PartialCode

logger = logging.getLogger(__name__)

# Single-character JSON escapes; \u is handled separately
_ESCAPES: dict[str, str] = {
    "n": "\n",
    '"': '"',
    "t": "\t",
    "\\": "\\",
    "r": "\r",
    "/": "/",
    "b": "\b",
    "f": "\f",
}

_WHITESPACE = frozenset(" \t\r\n")

_CODE_KEY = "code"


class _Mode(StrEnum):
    SEEKING = "seeking"  # no fence seen yet
    SCANNING = "scanning"  # inside the block, looking at JSON
    DONE = "done"  # code value closed, or nothing more to find


class _Role(StrEnum):
    """What the string currently being read means to us."""

    SKIP = "skip"
    KEY = "key"
    CODE = "code"
    FILE = "file"


class DirectiveScanner:
    """Best-effort live decoder for the directive's code value.

    Call update() with the whole running text after every fragment. Text is
    assumed append-only; a shorter text than last time restarts the scan.
    """

    def __init__(self, fence: str = FENCE_OPEN) -> None:
        self._fence = fence
        self.reset()

    def reset(self) -> None:
        """Forget everything and start over from an empty text."""
        self._mode = _Mode.SEEKING
        self._pos = 0
        self._fence_index = -1

        # JSON tokenizer state
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._unicode: str | None = None
        self._high_surrogate: int | None = None
        self._role = _Role.SKIP
        self._key_chars: list[str] = []
        self._expect_key = False
        self._last_key: str | None = None
        self._pending_key: str | None = None

        # Decoded output
        self._in_map = False
        self._parts: list[str] = []
        self._value = ""
        self._files: dict[str, str] = {}
        self._path: str | None = None
        self._started = False
        self._complete = False
        self._changed = False
        self._snapshot: PartialCode | None = None

    # ── Public state ──────────────────────────────────────────

    @property
    def active(self) -> bool:
        """True once the fence-open marker has been seen."""
        return self._fence_index >= 0

    @property
    def fence_index(self) -> int:
        """Offset of the fence-open marker in the running text, or -1."""
        return self._fence_index

    @property
    def done(self) -> bool:
        """True when no further input can change the snapshot."""
        return self._mode is _Mode.DONE

    @property
    def snapshot(self) -> PartialCode | None:
        """The latest decoded snapshot, if the code value has started."""
        return self._snapshot

    def conversational_text(self, running_text: str) -> str:
        """The part of the running text before the directive block."""
        if self._fence_index < 0:
            return running_text
        return running_text[: self._fence_index]

    # ── Scanning ──────────────────────────────────────────────

    def update(self, running_text: str) -> PartialCode | None:
        """Consume whatever the running text gained since the last call.

        Returns:
            A new PartialCode when the decoded code changed, else None.
        """
        if len(running_text) < self._pos:
            logger.debug("Running text shrank; restarting directive scan")
            self.reset()

        if self._mode is _Mode.SEEKING and not self._find_fence(running_text):
            return None

        if self._mode is _Mode.SCANNING:
            for char in running_text[self._pos :]:
                self._consume(char)
                if self._mode is _Mode.DONE:
                    break
        self._pos = len(running_text)

        self._flush()
        if not self._changed:
            return None
        self._changed = False
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def _find_fence(self, running_text: str) -> bool:
        # The marker may straddle the previous update boundary
        start = max(0, self._pos - len(self._fence) + 1)
        index = running_text.find(self._fence, start)
        if index < 0:
            self._pos = len(running_text)
            return False
        self._fence_index = index
        self._pos = index + len(self._fence)
        self._mode = _Mode.SCANNING
        logger.debug("Directive fence found at offset %d", index)
        return True

    @property
    def _active_depth(self) -> int:
        return 2 if self._in_map else 1

    def _consume(self, char: str) -> None:
        if self._in_string:
            self._consume_string_char(char)
            return
        if char in _WHITESPACE:
            return
        if char == '"':
            self._start_string()
        elif char in "{[":
            self._open(char)
        elif char in "}]":
            self._close()
        elif self._depth == self._active_depth:
            self._punctuation(char)

    def _open(self, char: str) -> None:
        self._depth += 1
        if self._depth == 1:
            self._expect_key = char == "{"
            return
        if self._depth == 2 and self._pending_key == _CODE_KEY and not self._in_map:
            if char != "{":
                # code as an array is not a shape we can preview
                self._mode = _Mode.DONE
                return
            self._in_map = True
            self._expect_key = True
            self._started = True
            self._changed = True
        self._pending_key = None

    def _close(self) -> None:
        if self._in_map and self._depth == 2:
            self._complete = True
            self._changed = True
            self._mode = _Mode.DONE
            return
        self._depth -= 1
        if self._depth <= 0:
            self._mode = _Mode.DONE

    def _punctuation(self, char: str) -> None:
        if char == ":":
            self._pending_key = self._last_key
            self._last_key = None
        elif char == ",":
            self._expect_key = True
            self._pending_key = None
        else:
            # Bare literal (true, 42, null...) at the level we track
            if self._pending_key == _CODE_KEY and not self._in_map:
                self._mode = _Mode.DONE
            self._pending_key = None

    def _start_string(self) -> None:
        self._in_string = True
        at_active = self._depth == self._active_depth

        if at_active and self._expect_key:
            self._role = _Role.KEY
            self._key_chars = []
            self._expect_key = False
        elif at_active and not self._in_map and self._pending_key == _CODE_KEY:
            self._role = _Role.CODE
            self._started = True
            self._changed = True
        elif at_active and self._in_map and self._pending_key is not None:
            self._role = _Role.FILE
            self._path = self._pending_key
            self._files[self._path] = ""
            self._changed = True
        else:
            self._role = _Role.SKIP

        if at_active:
            self._pending_key = None

    def _consume_string_char(self, char: str) -> None:
        if self._unicode is not None:
            self._unicode += char
            if len(self._unicode) == 4:
                self._decode_unicode(self._unicode)
                self._unicode = None
            return
        if self._escape:
            self._escape = False
            if char == "u":
                self._unicode = ""
            else:
                self._emit(_ESCAPES.get(char, char))
            return
        if char == "\\":
            self._escape = True
        elif char == '"':
            self._end_string()
        else:
            self._emit(char)

    def _decode_unicode(self, digits: str) -> None:
        try:
            code_point = int(digits, 16)
        except ValueError:
            return
        if 0xD800 <= code_point <= 0xDBFF:
            self._flush_surrogate()
            self._high_surrogate = code_point
            return
        if 0xDC00 <= code_point <= 0xDFFF and self._high_surrogate is not None:
            code_point = (
                0x10000 + ((self._high_surrogate - 0xD800) << 10) + (code_point - 0xDC00)
            )
            self._high_surrogate = None
        self._emit(chr(code_point))

    def _flush_surrogate(self) -> None:
        if self._high_surrogate is not None:
            high, self._high_surrogate = self._high_surrogate, None
            self._emit_raw(chr(high))

    def _emit(self, text: str) -> None:
        self._flush_surrogate()
        self._emit_raw(text)

    def _emit_raw(self, text: str) -> None:
        if self._role is _Role.KEY:
            self._key_chars.append(text)
        elif self._role in (_Role.CODE, _Role.FILE):
            self._parts.append(text)

    def _end_string(self) -> None:
        self._flush_surrogate()
        self._in_string = False
        role, self._role = self._role, _Role.SKIP
        if role is _Role.KEY:
            self._last_key = "".join(self._key_chars)
        elif role is _Role.CODE:
            self._flush(role)
            self._complete = True
            self._changed = True
            self._mode = _Mode.DONE
        elif role is _Role.FILE:
            self._flush(role)

    def _flush(self, role: _Role | None = None) -> None:
        """Move buffered decoded characters into the current value."""
        if not self._parts:
            return
        role = role or self._role
        text = "".join(self._parts)
        self._parts.clear()
        if role is _Role.CODE:
            self._value += text
        elif role is _Role.FILE and self._path is not None:
            self._files[self._path] += text
        self._changed = True

    def _build_snapshot(self) -> PartialCode | None:
        if not self._started:
            return None
        if self._in_map:
            current = self._files.get(self._path, "") if self._path else ""
            return PartialCode(
                text=current,
                path=self._path,
                files=dict(self._files),
                complete=self._complete,
            )
        return PartialCode(text=self._value, complete=self._complete)


def extract_partial_code(running_text: str) -> PartialCode | None:
    """One-shot form of the scanner: decode the code value in running_text.

    Pure function of its input; equal to feeding the same text to a
    DirectiveScanner in any number of pieces.
    """
    scanner = DirectiveScanner()
    scanner.update(running_text)
    return scanner.snapshot
