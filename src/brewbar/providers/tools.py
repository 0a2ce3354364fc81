"""Locate binaries of installed tool managers."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable

from brewbar.core.config import BREW_PREFIXES

TRACKED_TOOLS = (
    "uv", "bun", "mise", "fnm", "volta", "pyenv",
    "rbenv", "rustup", "goenv", "jenv", "chruby", "nvm",
)


def resolve_tool_paths(
    installed_names: Iterable[str],
    search_paths: Iterable[Path] = BREW_PREFIXES[:2],
) -> Dict[str, str]:
    """Map each installed tracked tool to the first binary found for it.

    Tools that are installed but have no binary in ``search_paths`` are
    left out.
    """
    installed = set(installed_names)
    search_paths = [Path(p) for p in search_paths]
    paths: Dict[str, str] = {}

    for tool in TRACKED_TOOLS:
        if tool not in installed:
            continue
        for directory in search_paths:
            candidate = directory / tool
            if candidate.exists():
                paths[tool] = str(candidate)
                break

    return paths
