"""Search adapter: ``brew search --formula`` and ``--cask``."""

from __future__ import annotations

import asyncio
from typing import List

from brewbar.core.logging import get_logger
from brewbar.core.models import InventorySnapshot, SearchResults
from brewbar.providers.base import Runner

log = get_logger(__name__)


def parse_names(text: str) -> List[str]:
    """Trimmed, non-empty, de-duplicated lines in input order."""
    seen: set[str] = set()
    names: List[str] = []

    for line in text.splitlines():
        name = line.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)

    return names


async def search(runner: Runner, query: str) -> SearchResults:
    """Search formulae and casks concurrently."""
    formulae_out, casks_out = await asyncio.gather(
        runner.run("search", "--formula", query),
        runner.run("search", "--cask", query),
    )
    results = SearchResults(
        formulae=tuple(parse_names(formulae_out)),
        casks=tuple(parse_names(casks_out)),
    )
    log.info(
        "search_complete",
        query=query,
        formulae=len(results.formulae),
        casks=len(results.casks),
    )

    return results


def exclude_installed(results: SearchResults, snapshot: InventorySnapshot) -> SearchResults:
    """Drop results that are already installed."""
    names = snapshot.formula_names
    tokens = snapshot.cask_tokens

    return SearchResults(
        formulae=tuple(n for n in results.formulae if n not in names),
        casks=tuple(t for t in results.casks if t not in tokens),
    )
