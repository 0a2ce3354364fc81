"""Brewfile parsing and status reconciliation."""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path
from typing import Iterable

from brewbar.core.errors import BundleError
from brewbar.core.logging import get_logger
from brewbar.core.models import Bundle, BundleEntry, BundleEntryType, InventorySnapshot

log = get_logger(__name__)

DIRECTIVE = re.compile(r'^(\w+)\s+"([^"]+)"')
KEYWORDS = {t.value: t for t in BundleEntryType}


def parse_bundle(text: str) -> list[BundleEntry]:
    """Parse Brewfile text into entries.

    Blank lines, ``#`` comments and lines that are not a
    ``<keyword> "<name>"`` directive are skipped. Unknown keywords are read
    as formulae.
    """
    entries: list[BundleEntry] = []

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = DIRECTIVE.match(stripped)
        if match is None:
            continue
        keyword, name = match.groups()
        entry_type = KEYWORDS.get(keyword, BundleEntryType.BREW)
        entries.append(BundleEntry(type=entry_type, name=name))

    return entries


def load_bundle(path: str | Path) -> Bundle:
    """Read a Brewfile from disk. Entries are not yet checked.

    Raises:
        BundleError: If the file cannot be read.
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error("bundle_read_failed", path=str(path), error=str(e))
        raise BundleError(path=str(path), error=str(e)) from e

    entries = parse_bundle(text)
    log.info("bundle_loaded", path=str(path), count=len(entries))

    return Bundle(path=str(path), display_name=path.name, entries=tuple(entries))


def check_entries(
    entries: Iterable[BundleEntry], snapshot: InventorySnapshot
) -> list[BundleEntry]:
    """Recompute each entry's installed flag against ``snapshot``."""
    names = snapshot.formula_names
    full_names = frozenset(f.full_name for f in snapshot.formulae if f.full_name)
    tokens = snapshot.cask_tokens

    checked: list[BundleEntry] = []
    for entry in entries:
        if entry.type is BundleEntryType.BREW:
            # Brewfiles may use the short name or the tap-qualified one
            installed = entry.name in names or entry.name in full_names
        elif entry.type is BundleEntryType.CASK:
            installed = entry.name in tokens
        else:
            installed = True
        checked.append(replace(entry, installed=installed))

    return checked


def check_bundle(bundle: Bundle, snapshot: InventorySnapshot) -> Bundle:
    """Return a copy of ``bundle`` with statuses from ``snapshot``."""
    return replace(bundle, entries=tuple(check_entries(bundle.entries, snapshot)))
