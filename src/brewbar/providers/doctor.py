"""Diagnostics adapter: ``brew doctor``."""

from __future__ import annotations

from typing import List

from brewbar.core.logging import get_logger
from brewbar.providers.base import Runner

log = get_logger(__name__)

WARNING_PREFIX = "Warning:"


def parse_doctor(text: str) -> List[str]:
    """Headline of every ``Warning:`` block in doctor output."""
    return [
        line.strip()[len(WARNING_PREFIX):].strip()
        for line in text.splitlines()
        if line.strip().startswith(WARNING_PREFIX)
    ]


async def run_doctor(runner: Runner) -> List[str]:
    # doctor exits 1 whenever it has warnings
    output = await runner.run_allowing_failure("doctor")
    warnings = parse_doctor(output)
    log.info("doctor_complete", warnings=len(warnings))

    return warnings
