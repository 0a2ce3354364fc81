"""CLI entry point for BrewBar."""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console

from brewbar.analysis.bundle import load_bundle
from brewbar.analysis.dependencies import leaves, orphans
from brewbar.cli.renderers import (
    bundle_table,
    mapping_table,
    outdated_table,
    package_table,
    redundancy_table,
    search_table,
    services_table,
    summary_table,
)
from brewbar.core.config import load_settings
from brewbar.core.errors import (
    EXIT_SYSTEM_ERROR,
    EXIT_TRANSIENT_ERROR,
    EXIT_USER_ERROR,
    BrewError,
    PackageNotFoundError,
    RefreshError,
    SystemError,
    TransientError,
    UserError,
    format_error_message,
    suggest_search,
)
from brewbar.core.inventory import Inventory
from brewbar.core.logging import configure_logging, get_logger
from brewbar.core.models import ActionResult, InventorySnapshot, PackageKind, UninstallConfirmation
from brewbar.core.repo import Repository
from brewbar.core.store import AppStore

log = get_logger(__name__)
console = Console()

T = TypeVar("T")

app = typer.Typer(help="BrewBar: inspect and manage a Homebrew installation.")
service_app = typer.Typer(help="Control brew services.")
bundle_app = typer.Typer(help="Compare, export and apply Brewfiles.")
app.add_typer(service_app, name="service")
app.add_typer(bundle_app, name="bundle")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr")) -> None:
    """Configure logging before any command runs."""
    settings = load_settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_dir / "backend.log",
        enable_console=verbose,
        force=True,
    )


def handle_error(error: Exception) -> int:
    """Handle errors and return appropriate exit codes.

    Args:
        error: The exception to handle.

    Returns:
        An integer exit code.
    """
    if isinstance(error, BrewError):
        log.error(
            "cli_error",
            error_type=type(error).__name__,
            message=error.message,
            context=error.context,
        )
        console.print(f"\n{format_error_message(error)}\n", style="bold red")

        if isinstance(error, PackageNotFoundError):
            package = error.context.get("package", "")
            console.print(suggest_search(package), style="dim")

        # A failed refresh exits like the source failure behind it
        category = error.cause if isinstance(error, RefreshError) else error
        if isinstance(category, TransientError):
            return EXIT_TRANSIENT_ERROR
        elif isinstance(category, UserError):
            return EXIT_USER_ERROR
        elif isinstance(category, SystemError):
            return EXIT_SYSTEM_ERROR
        else:
            return EXIT_USER_ERROR
    else:
        log.error(
            "unexpected_error",
            error=str(error),
            exc_info=True
        )
        console.print(
            f"\n⚠️ Unexpected error occurred: {error}\n",
            style="bold red"
        )
        return EXIT_SYSTEM_ERROR


def _new_store() -> AppStore:
    settings = load_settings()
    return AppStore(Inventory(Repository(settings=settings), settings=settings))


def _with_store(action: Callable[[AppStore], Awaitable[T]]) -> T:
    """Refresh a fresh store, then run ``action`` against it."""
    async def run() -> T:
        store = _new_store()
        await store.inventory.refresh()
        try:
            return await action(store)
        finally:
            store.close()

    return asyncio.run(run())


async def _current(store: AppStore) -> InventorySnapshot:
    return store.snapshot


def _snapshot() -> InventorySnapshot:
    return _with_store(_current)


async def _pair(
    store: AppStore, action: Callable[[AppStore], Awaitable[T]]
) -> tuple[AppStore, T]:
    return store, await action(store)


def _report(store: AppStore, result: Optional[ActionResult]) -> None:
    """Print an action's output; exit with its error code on failure."""
    if result is None:
        return
    if result.output:
        console.print(result.output, markup=False, highlight=False)
    if result.error is not None:
        error = store.last_error or BrewError(result.error)
        sys.exit(handle_error(error))
    console.print(f"✓ {result.description.rstrip('.')}", style="green")
    if store.refresh_error is not None:
        console.print(format_error_message(store.refresh_error), style="yellow")


def _guard(fn: Callable[[], Any]) -> None:
    try:
        fn()
    except Exception as e:
        sys.exit(handle_error(e))


# Queries

@app.command("list")
def list_packages(
    kind: Optional[PackageKind] = typer.Option(
        None, "--kind", "-k", help="formula | cask"
    ),
    outdated: bool = typer.Option(False, help="Only outdated"),
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Filter by text"
    ),
) -> None:
    """List installed packages."""
    def run() -> None:
        snapshot = _snapshot()
        formulae = list(snapshot.formulae) if kind in (None, PackageKind.FORMULA) else []
        casks = list(snapshot.casks) if kind in (None, PackageKind.CASK) else []
        if outdated:
            old_names = {f.name for f in snapshot.outdated_formulae}
            old_tokens = {c.token for c in snapshot.outdated_casks}
            formulae = [f for f in formulae if f.outdated or f.name in old_names]
            casks = [c for c in casks if c.outdated or c.token in old_tokens]
        if search:
            q = search.lower()
            formulae = [
                f for f in formulae
                if q in f.name.lower() or (f.description and q in f.description.lower())
            ]
            casks = [
                c for c in casks
                if q in c.token.lower() or (c.description and q in c.description.lower())
            ]
        console.print(package_table(formulae, casks))

    _guard(run)


@app.command()
def outdated() -> None:
    """Show packages with a newer version available."""
    _guard(lambda: console.print(outdated_table(_snapshot())))


@app.command()
def services() -> None:
    """Show brew-managed services."""
    _guard(lambda: console.print(services_table(_snapshot().services)))


@app.command()
def config() -> None:
    """Show ``brew config``."""
    _guard(lambda: console.print(mapping_table(_snapshot().config)))


@app.command()
def info() -> None:
    """Summarise the installation."""
    _guard(lambda: console.print(summary_table(_snapshot())))


@app.command()
def taps() -> None:
    """List taps that installed packages come from."""
    def run() -> None:
        for tap in _snapshot().taps:
            console.print(tap)

    _guard(run)


@app.command()
def redundant() -> None:
    """Show formulae superseded by an installed version manager."""
    def run() -> None:
        snapshot = _snapshot()
        if not snapshot.redundant:
            console.print("No redundant formulae found.", style="green")
            return
        console.print(redundancy_table(snapshot.redundant))

    _guard(run)


@app.command("leaves")
def leaves_cmd(
    orphaned: bool = typer.Option(
        False, "--orphans", help="Show dependencies nothing needs any more"
    ),
) -> None:
    """List formulae nothing else depends on."""
    def run() -> None:
        snapshot = _snapshot()
        pick = orphans if orphaned else leaves
        console.print(package_table(pick(snapshot.formulae, snapshot.reverse_dependencies), []))

    _guard(run)


@app.command()
def search(term: str) -> None:
    """Search brew for packages that are not installed yet."""
    def run() -> None:
        async def action(store: AppStore):
            results = await store.search(term)
            if store.last_error is not None:
                raise store.last_error
            return results

        console.print(search_table(_with_store(action)))

    _guard(run)


@app.command()
def doctor() -> None:
    """Run ``brew doctor`` and list its warnings."""
    def run() -> None:
        async def action(store: AppStore) -> List[str]:
            warnings = await store.run_doctor()
            if store.last_error is not None:
                raise store.last_error
            return warnings

        warnings = _with_store(action)
        if not warnings:
            console.print("Your system is ready to brew.", style="green")
        for warning in warnings:
            console.print(f"⚠️ {warning}", style="yellow")

    _guard(run)


# Mutations

def _act(action: Callable[[AppStore], Awaitable[Optional[ActionResult]]]) -> None:
    def run() -> None:
        store, result = _with_store(lambda store: _pair(store, action))
        _report(store, result)

    _guard(run)


@app.command()
def install(
    name: str, cask: bool = typer.Option(False, "--cask", help="Install a cask")
) -> None:
    """Install a formula or cask."""
    _act(lambda store: store.install(name, cask=cask))


@app.command()
def uninstall(
    names: List[str] = typer.Argument(..., help="Formulae or casks to remove"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask about dependents"),
) -> None:
    """Uninstall packages, warning when other formulae depend on them."""
    async def action(store: AppStore) -> Optional[ActionResult]:
        outcome = await store.uninstall_all(names)
        if not isinstance(outcome, UninstallConfirmation):
            return outcome
        console.print(
            f"These installed formulae depend on {', '.join(outcome.packages)}: "
            f"{', '.join(outcome.dependents)}",
            style="yellow",
        )
        if not yes and not await asyncio.to_thread(
            typer.confirm, "Uninstall anyway?", default=False
        ):
            store.cancel_uninstall()
            console.print("Cancelled.")
            return None
        return await store.confirm_uninstall()

    _act(action)


@app.command()
def upgrade(
    names: Optional[List[str]] = typer.Argument(None, help="Packages (default: everything)"),
    cask: bool = typer.Option(False, "--cask", help="Treat every name as a cask"),
) -> None:
    """Upgrade everything, one package, or a selection."""
    def action(store: AppStore):
        if not names:
            return store.upgrade_all()
        if len(names) == 1:
            return store.upgrade(names[0], cask=cask)
        return store.upgrade_selected(names, cask=cask)

    _act(action)


@app.command()
def pin(name: str) -> None:
    """Pin a formula at its installed version."""
    _act(lambda store: store.pin(name))


@app.command()
def unpin(name: str) -> None:
    """Allow a pinned formula to be upgraded again."""
    _act(lambda store: store.unpin(name))


@app.command()
def cleanup(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Only show what would go"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove old versions and caches."""
    async def action(store: AppStore) -> Optional[ActionResult]:
        preview = await store.preview_cleanup()
        if store.last_error is not None:
            raise store.last_error
        if preview is None:
            console.print("Nothing to clean up.", style="green")
            return None
        console.print(preview.details, markup=False, highlight=False)
        console.print(f"{preview.file_count} item(s) can be removed.", style="bold")
        if dry_run:
            return None
        if not yes and not await asyncio.to_thread(
            typer.confirm, "Clean up now?", default=False
        ):
            console.print("Cancelled.")
            return None
        return await store.confirm_cleanup()

    _act(action)


@service_app.command("start")
def service_start(name: str) -> None:
    """Start a service."""
    _act(lambda store: store.start_service(name))


@service_app.command("stop")
def service_stop(name: str) -> None:
    """Stop a service."""
    _act(lambda store: store.stop_service(name))


@service_app.command("restart")
def service_restart(name: str) -> None:
    """Restart a service."""
    _act(lambda store: store.restart_service(name))


@service_app.command("log")
def service_log(name: str) -> None:
    """Show the tail of a service's log file."""
    def run() -> None:
        async def action(store: AppStore):
            entry = await store.fetch_service_log(name)
            if store.last_error is not None:
                raise store.last_error
            return entry

        console.print(_with_store(action).content, markup=False, highlight=False)

    _guard(run)


@bundle_app.command("check")
def bundle_check(path: str) -> None:
    """Compare a Brewfile with what is installed."""
    def run() -> None:
        async def action(store: AppStore):
            bundle = store.load_bundle(path)
            if bundle is None:
                raise store.last_error
            return bundle

        console.print(bundle_table(_with_store(action)))

    _guard(run)


@bundle_app.command("export")
def bundle_export(path: str) -> None:
    """Write the current installation to a Brewfile."""
    _act(lambda store: store.export_bundle(path))


@bundle_app.command("apply")
def bundle_apply(path: str) -> None:
    """Install whatever a Brewfile lists that is missing."""
    # Fail on an unreadable file before refreshing anything
    _guard(lambda: load_bundle(path))

    async def action(store: AppStore) -> Optional[ActionResult]:
        bundle = store.load_bundle(path)
        if bundle is None:
            raise store.last_error
        if bundle.missing_count == 0:
            console.print("Everything in the Brewfile is installed.", style="green")
            return None
        return await store.install_bundle_missing()

    _act(action)


if __name__ == "__main__":
    app()
