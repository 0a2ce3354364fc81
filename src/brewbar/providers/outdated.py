"""Outdated-inventory adapter: ``brew outdated --json=v2``."""

from __future__ import annotations

import time
from typing import List, Tuple

from brewbar.core.logging import get_logger
from brewbar.core.models import UNKNOWN_VERSION, Cask, Formula
from brewbar.providers.base import Runner, decode_items, section

log = get_logger(__name__)

ADAPTER = "outdated"


def _first_version(item: dict) -> str:
    versions = item.get("installed_versions") or []
    return versions[0] if versions else UNKNOWN_VERSION


def outdated_formula_from_json(f: dict) -> Formula:
    name = f["name"]
    return Formula(
        name=name,
        full_name=name,
        version=_first_version(f),
        latest_version=f.get("current_version"),
        outdated=True,
        pinned=bool(f.get("pinned")),
    )


def outdated_cask_from_json(c: dict) -> Cask:
    token = c["name"]
    return Cask(
        token=token,
        name=token,
        version=_first_version(c),
        latest_version=c.get("current_version"),
        outdated=True,
    )


def decode_outdated(data: dict) -> Tuple[List[Formula], List[Cask]]:
    formulae = decode_items(
        section(data, "formulae", ADAPTER), outdated_formula_from_json, ADAPTER
    )
    casks = decode_items(section(data, "casks", ADAPTER), outdated_cask_from_json, ADAPTER)

    return (
        sorted(formulae, key=lambda f: f.name),
        sorted(casks, key=lambda c: c.token),
    )


async def fetch_outdated(runner: Runner) -> Tuple[List[Formula], List[Cask]]:
    """List out-of-date formulae and casks, each carrying its upstream version."""
    start = time.perf_counter()
    data = await runner.run_json("outdated", "--json=v2", adapter=ADAPTER)
    formulae, casks = decode_outdated(data)

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "outdated_fetch_complete",
        formulae=len(formulae),
        casks=len(casks),
        duration_ms=duration_ms
    )

    return formulae, casks
