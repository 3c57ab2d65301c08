"""Credential loading for Code Companion.

Keys are read from the environment with this priority:
  1. Environment variables already set in the shell (highest)
  2. ~/.companion/keys.env (saved with `companion keys --set`)
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from companion.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Directory for user-level configuration
COMPANION_HOME = Path.home() / ".companion"
KEYS_FILE = COMPANION_HOME / "keys.env"

# Known credentials: (env_var, display_name, used_for)
KNOWN_KEYS = [
    ("OPENAI_API_KEY", "OpenAI", "Chat generation (default model)"),
    ("ANTHROPIC_API_KEY", "Anthropic", "Chat generation (Claude models)"),
    ("VERCEL_TOKEN", "Vercel", "Deployments"),
]


def load_keys_env() -> None:
    """Load ~/.companion/keys.env and ./.env into os.environ.

    Existing env vars are never overwritten, and earlier files win over
    later ones.
    """
    files = [KEYS_FILE, Path.cwd() / ".env"]
    for env_file in files:
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def save_keys(keys: dict[str, str], path: Path | None = None) -> Path:
    """Merge keys into the user key file and return its path.

    Empty values remove the key from the file.
    """
    path = path or KEYS_FILE
    existing: dict[str, str] = {}
    if path.is_file():
        for line in path.read_text(encoding="utf-8").splitlines():
            key, sep, value = line.partition("=")
            if sep and not key.startswith("#"):
                existing[key.strip()] = value.strip()

    existing.update(keys)

    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["# Code Companion keys", ""]
    lines.extend(f"{k}={v}" for k, v in existing.items() if v)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Restrict permissions on Unix (best-effort)
    try:
        path.chmod(0o600)
    except OSError:
        pass

    return path


def get_configured_keys() -> dict[str, bool]:
    """Return env_var -> whether it is set, for every known key."""
    load_keys_env()
    return {env_var: bool(os.environ.get(env_var)) for env_var, _, _ in KNOWN_KEYS}


def require_key(env_var: str, label: str) -> str:
    """Return the value of env_var or raise ConfigurationError.

    Args:
        env_var: Environment variable to read.
        label: What the key is for, used in the error message
            (e.g. "API key", "Vercel token").
    """
    value = os.environ.get(env_var, "")
    if not value:
        raise ConfigurationError(f"{label} not configured")
    return value
