"""Tests for companion.prompts — system prompt rendering."""

from __future__ import annotations

import pytest

from companion.prompts import render_prompt, system_prompt
from companion.schemas.config import ProjectTemplate


class TestSystemPrompt:
    def test_nextjs_prompt_has_fence_and_page(self):
        prompt = system_prompt(ProjectTemplate.NEXTJS)
        assert "```DEPLOY_CONFIG" in prompt
        assert '"page.tsx"' in prompt
        assert "'use client';" in prompt
        assert "{{" not in prompt

    def test_static_prompt_asks_for_html(self):
        prompt = system_prompt(ProjectTemplate.STATIC)
        assert "```DEPLOY_CONFIG" in prompt
        assert "index.html" in prompt
        assert "page.tsx" not in prompt

    def test_missing_template(self):
        with pytest.raises(FileNotFoundError):
            render_prompt("does_not_exist")
