"""Installed-inventory adapter: ``brew info --json=v2 --installed``."""

from __future__ import annotations

import time
from typing import List, Tuple

from brewbar.core.logging import get_logger
from brewbar.core.models import UNKNOWN_VERSION, Cask, Formula
from brewbar.providers.base import Runner, decode_items, section

log = get_logger(__name__)

ADAPTER = "installed"


def formula_from_json(f: dict) -> Formula:
    """Map one ``formulae[]`` item to a Formula.

    An empty ``installed`` array yields version "unknown", and a missing
    ``installed_on_request`` is read as True.
    """
    installed = f.get("installed") or []
    first = installed[0] if installed else {}

    version = first.get("version") or UNKNOWN_VERSION
    on_request = first.get("installed_on_request")
    if on_request is None:
        on_request = True

    name = f["name"]

    return Formula(
        name=name,
        full_name=f.get("full_name") or name,
        version=version,
        description=f.get("desc"),
        homepage=f.get("homepage"),
        outdated=bool(f.get("outdated")),
        pinned=bool(f.get("pinned")),
        license=f.get("license"),
        tap=f.get("tap"),
        dependencies=tuple(f.get("dependencies") or ()),
        build_dependencies=tuple(f.get("build_dependencies") or ()),
        installed_on_request=bool(on_request),
    )


def cask_from_json(c: dict) -> Cask:
    """Map one ``casks[]`` item to a Cask."""
    token = c["token"]
    names = c.get("name") or []

    return Cask(
        token=token,
        name=names[0] if names else token,
        version=c.get("installed") or UNKNOWN_VERSION,
        description=c.get("desc"),
        homepage=c.get("homepage"),
        outdated=bool(c.get("outdated")),
        tap=c.get("tap"),
        auto_updates=bool(c.get("auto_updates")),
    )


def decode_installed(data: dict) -> Tuple[List[Formula], List[Cask]]:
    formulae = decode_items(section(data, "formulae", ADAPTER), formula_from_json, ADAPTER)
    casks = decode_items(section(data, "casks", ADAPTER), cask_from_json, ADAPTER)

    return (
        sorted(formulae, key=lambda f: f.name),
        sorted(casks, key=lambda c: c.token),
    )


async def fetch_installed(runner: Runner) -> Tuple[List[Formula], List[Cask]]:
    """List installed formulae and casks.

    Returns:
        Formulae sorted by name and casks sorted by token.
    """
    start = time.perf_counter()
    data = await runner.run_json("info", "--json=v2", "--installed", adapter=ADAPTER)
    formulae, casks = decode_installed(data)

    duration_ms = int((time.perf_counter() - start) * 1000)
    log.info(
        "installed_fetch_complete",
        formulae=len(formulae),
        casks=len(casks),
        duration_ms=duration_ms
    )

    return formulae, casks
