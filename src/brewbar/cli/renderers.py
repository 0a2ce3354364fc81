"""Renderers for displaying inventory data in the CLI using Rich."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from rich import box
from rich.table import Table

from brewbar.core.models import (
    Bundle,
    Cask,
    Formula,
    InventorySnapshot,
    RedundantPackage,
    SearchResults,
    Service,
    ServiceStatus,
)

SERVICE_STYLES = {
    ServiceStatus.STARTED: "[green]started[/green]",
    ServiceStatus.STOPPED: "[dim]stopped[/dim]",
    ServiceStatus.ERROR: "[red]error[/red]",
    ServiceStatus.UNKNOWN: "[yellow]unknown[/yellow]",
}


def _flags(outdated: bool, pinned: bool = False, auto_updates: bool = False) -> str:
    bits = []
    if outdated:
        bits.append("[red]Outdated[/red]")
    if pinned:
        bits.append("[yellow]Pinned[/yellow]")
    if auto_updates:
        bits.append("[cyan]Auto-updates[/cyan]")
    return ", ".join(bits) or "[green]Up-to-date[/green]"


def package_table(formulae: Iterable[Formula], casks: Iterable[Cask]) -> Table:
    """Create a Rich Table of installed formulae and casks.

    Args:
        formulae: Formulae to list.
        casks: Casks to list.

    Returns:
        A Rich Table with one row per package.
    """
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Kind", style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Installed")
    table.add_column("Status")
    table.add_column("Tap", style="dim")
    table.add_column("Description", style="dim")

    for f in formulae:
        table.add_row(
            "formula",
            f.name,
            f.version,
            _flags(f.outdated, pinned=f.pinned),
            f.tap or "",
            f.description or "",
        )
    for c in casks:
        table.add_row(
            "cask",
            c.token,
            c.version,
            _flags(c.outdated, auto_updates=c.auto_updates),
            c.tap or "",
            c.description or "",
        )

    return table


def outdated_table(snapshot: InventorySnapshot) -> Table:
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Kind", style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Installed")
    table.add_column("Latest", style="green")
    table.add_column("Pinned")

    for f in snapshot.outdated_formulae:
        table.add_row("formula", f.name, f.version, f.latest_version or "", "yes" if f.pinned else "")
    for c in snapshot.outdated_casks:
        table.add_row("cask", c.token, c.version, c.latest_version or "", "")

    return table


def services_table(services: Iterable[Service]) -> Table:
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("PID", justify="right")
    table.add_column("Exit", justify="right")
    table.add_column("User", style="dim")
    table.add_column("File", style="dim")

    for s in services:
        table.add_row(
            s.name,
            SERVICE_STYLES[s.status],
            str(s.pid) if s.pid is not None else "",
            str(s.exit_code) if s.exit_code is not None else "",
            s.user or "",
            s.file or "",
        )

    return table


def mapping_table(values: Mapping[str, str], key_title: str = "Key") -> Table:
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column(key_title, style="bold")
    table.add_column("Value")
    for key, value in values.items():
        table.add_row(key, value)
    return table


def redundancy_table(findings: Sequence[RedundantPackage]) -> Table:
    """Findings grouped visually by the tool that supersedes them."""
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Formula", style="bold")
    table.add_column("Version")
    table.add_column("Superseded by", style="cyan")
    table.add_column("Why", style="dim")
    table.add_column("Needed by", style="yellow")

    for finding in findings:
        table.add_row(
            finding.name,
            finding.formula.version,
            finding.rule.tool_name,
            finding.rule.description,
            ", ".join(finding.dependents),
        )

    return table


def bundle_table(bundle: Bundle) -> Table:
    table = Table(
        box=box.MINIMAL_HEAVY_HEAD,
        title=(
            f"{bundle.display_name}: {bundle.installed_count}/{bundle.checkable_count} "
            f"installed, {bundle.missing_count} missing"
        ),
    )
    table.add_column("Type", style="bold")
    table.add_column("Name")
    table.add_column("Status")

    for entry in bundle.entries:
        if not entry.type.is_checkable:
            status = "[dim]-[/dim]"
        elif entry.installed:
            status = "[green]installed[/green]"
        else:
            status = "[red]missing[/red]"
        table.add_row(entry.type.label, entry.name, status)

    return table


def search_table(results: SearchResults) -> Table:
    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("Kind", style="bold")
    table.add_column("Name")
    for name in results.formulae:
        table.add_row("formula", name)
    for token in results.casks:
        table.add_row("cask", token)
    return table


def summary_table(snapshot: InventorySnapshot) -> Table:
    """Counts plus the most useful bits of ``brew config``."""
    t = Table(box=box.MINIMAL_HEAVY_HEAD)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Formulae", str(len(snapshot.formulae)))
    t.add_row("Casks", str(len(snapshot.casks)))
    t.add_row("Outdated", str(snapshot.outdated_count))
    t.add_row("Services", str(len(snapshot.services)))
    t.add_row("Redundant", str(len(snapshot.redundant)))
    t.add_row("Taps", ", ".join(snapshot.taps))
    for key in ("HOMEBREW_VERSION", "HOMEBREW_PREFIX", "macOS", "CPU"):
        if key in snapshot.config:
            t.add_row(key, snapshot.config[key])
    for tool, path in snapshot.tool_paths.items():
        t.add_row(f"Tool: {tool}", path)

    return t
