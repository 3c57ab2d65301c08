"""Deploy directive handling: live partial decode and final parse."""

from companion.directive.finalizer import (
    DEFAULT_MESSAGE,
    finalize_directive,
    normalize_project_name,
    parse_directive_payload,
)
from companion.directive.scanner import DirectiveScanner, extract_partial_code

__all__ = [
    "DEFAULT_MESSAGE",
    "DirectiveScanner",
    "extract_partial_code",
    "finalize_directive",
    "normalize_project_name",
    "parse_directive_payload",
]
