"""Configuration module for BrewBar environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

BREW_PREFIXES = (
    Path("/opt/homebrew/bin"),
    Path("/usr/local/bin"),
    Path("/home/linuxbrew/.linuxbrew/bin"),
)

DATA_DIR = Path.home() / ".brewbar"


@dataclass
class Settings:
    """Runtime settings for BrewBar."""
    brew_prefixes: tuple[Path, ...] = BREW_PREFIXES
    tool_search_paths: tuple[Path, ...] = BREW_PREFIXES[:2]
    refresh_interval: float = 300.0
    query_timeout: int = 120
    command_timeout: int = 600
    log_tail_lines: int = 50
    log_level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: DATA_DIR / "logs")


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build settings, applying BREWBAR_* environment overrides."""
    defaults = Settings()

    return Settings(
        refresh_interval=_env_number("BREWBAR_REFRESH_INTERVAL", defaults.refresh_interval),
        query_timeout=int(_env_number("BREWBAR_QUERY_TIMEOUT", defaults.query_timeout)),
        command_timeout=int(_env_number("BREWBAR_COMMAND_TIMEOUT", defaults.command_timeout)),
        log_level=os.environ.get("BREWBAR_LOG_LEVEL", defaults.log_level).upper(),
        log_dir=Path(os.environ.get("BREWBAR_LOG_DIR") or defaults.log_dir).expanduser(),
    )
