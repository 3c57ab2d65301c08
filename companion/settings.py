"""TOML configuration loader.

Loads defaults.toml (shipped in companion/config/) into a CompanionConfig.
Sections that are absent fall back to the schema defaults.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from companion.schemas.config import (
    ChatConfig,
    CompanionConfig,
    DeployConfig,
    ModelConfig,
)

# Default config directory relative to the companion package
CONFIG_DIR = Path(__file__).parent / "config"


def load_config(config_path: Path | None = None) -> CompanionConfig:
    """Load Code Companion settings from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to
            companion/config/defaults.toml.

    Returns:
        CompanionConfig populated from the file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML is malformed or a value fails validation.
    """
    path = config_path or CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    try:
        return CompanionConfig(
            model=ModelConfig(**raw.get("model", {})),
            deploy=DeployConfig(**raw.get("deploy", {})),
            chat=ChatConfig(**raw.get("chat", {})),
        )
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e
