"""System prompt templates.

Markdown templates in this directory are rendered with Jinja2. The
companion prompt carries the fence contract the directive scanner and
finalizer depend on, so the marker is injected rather than hard-coded.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, Environment

from companion.schemas.config import ProjectTemplate
from companion.schemas.directive import FENCE_CLOSE, FENCE_OPEN

# Directory containing the .md prompt template files
_PROMPTS_DIR = Path(__file__).parent


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    env = Environment(loader=BaseLoader(), keep_trailing_newline=True)
    template = env.from_string(path.read_text(encoding="utf-8"))
    return template.render(**variables)


def system_prompt(template: ProjectTemplate = ProjectTemplate.NEXTJS) -> str:
    """The chat system prompt for the given project template."""
    return render_prompt(
        "companion",
        fence_open=FENCE_OPEN,
        fence_close=FENCE_CLOSE,
        nextjs=template is ProjectTemplate.NEXTJS,
    )
