"""Tests for companion.settings — TOML configuration loading."""

from __future__ import annotations

import pytest

from companion.schemas.config import CompanionConfig, ProjectTemplate
from companion.settings import load_config


class TestLoadConfig:
    def test_shipped_defaults(self):
        config = load_config()
        assert isinstance(config, CompanionConfig)
        assert config.model.model == "gpt-4o"
        assert config.deploy.template is ProjectTemplate.NEXTJS
        assert config.deploy.poll.max_attempts == 30
        assert config.deploy.poll.delay == 2.0
        assert config.chat.fallback_message == "Building your app now!"

    def test_partial_file_uses_schema_defaults(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text(
            '[deploy]\ntemplate = "static"\n\n[deploy.poll]\nmax_attempts = 5\n',
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.deploy.template is ProjectTemplate.STATIC
        assert config.deploy.poll.max_attempts == 5
        assert config.deploy.poll.delay == 2.0
        assert config.model.api_key_env == "OPENAI_API_KEY"
        assert "{url}" in config.chat.live_message

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_malformed_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[model\nmodel = ", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[deploy.poll]\nmax_attempts = 0\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)

    def test_unknown_template(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[deploy]\ntemplate = "rails"\n', encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)
