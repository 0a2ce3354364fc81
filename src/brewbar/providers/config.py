"""Configuration adapter: ``brew config``."""

from __future__ import annotations

from typing import Dict

from brewbar.core.logging import get_logger
from brewbar.providers.base import Runner

log = get_logger(__name__)


def parse_config(text: str) -> Dict[str, str]:
    """Parse ``Key: value`` lines; lines missing a key or a value are ignored."""
    config: Dict[str, str] = {}

    for line in text.splitlines():
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        config[key] = value

    return config


async def fetch_config(runner: Runner) -> Dict[str, str]:
    config = parse_config(await runner.run("config"))
    log.info("config_fetch_complete", count=len(config))

    return config
