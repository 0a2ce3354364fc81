"""Application state and serialised mutating operations."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from brewbar.analysis.bundle import check_bundle, load_bundle
from brewbar.analysis.dependencies import uninstall_risk
from brewbar.core.errors import BrewError, BundleError, PackageNotFoundError, RefreshError
from brewbar.core.inventory import Inventory
from brewbar.core.logging import get_logger
from brewbar.core.models import (
    ActionResult,
    Bundle,
    CleanupPreview,
    InventorySnapshot,
    SearchResults,
    ServiceLog,
    UninstallConfirmation,
)
from brewbar.providers.search import exclude_installed

log = get_logger(__name__)

Command = Callable[[], Awaitable[str]]


class AppStore:
    """State shared with whatever presents BrewBar, plus its actions.

    Every mutating action holds the inventory lock while its single brew
    command runs, so it never overlaps a refresh or another action, and
    always triggers a refresh afterwards, even when the command failed.

    Errors from actions land in ``last_error``; refresh failures live on
    the inventory (``refresh_error``).
    """

    def __init__(self, inventory: Optional[Inventory] = None) -> None:
        self.inventory = inventory or Inventory()
        self.repo = self.inventory.repo
        self.action_in_progress: Optional[str] = None
        self.last_output: Optional[str] = None
        self.last_error: Optional[BrewError] = None
        self.bundle: Optional[Bundle] = None
        self.pending_uninstall: Optional[UninstallConfirmation] = None
        self.cleanup_preview: Optional[CleanupPreview] = None
        self.nothing_to_clean = False
        self.search_results = SearchResults()
        self.service_log: Optional[ServiceLog] = None
        self.doctor_warnings: List[str] = []
        self.doctor_checked = False
        self._unsubscribe = self.inventory.subscribe(self._on_snapshot)

    @property
    def snapshot(self) -> InventorySnapshot:
        return self.inventory.snapshot

    @property
    def refresh_error(self) -> Optional[RefreshError]:
        return self.inventory.last_error

    def close(self) -> None:
        self._unsubscribe()

    def _on_snapshot(self, snapshot: InventorySnapshot) -> None:
        if self.bundle is not None:
            self.bundle = check_bundle(self.bundle, snapshot)

    def _fail(self, error: BrewError) -> None:
        self.last_error = error
        log.error("action_error", error=error.message, error_type=type(error).__name__)

    # Core plumbing

    async def refresh(self) -> InventorySnapshot:
        """Refresh the inventory; a failure keeps the previous snapshot."""
        try:
            return await self.inventory.refresh()
        except RefreshError:
            return self.inventory.snapshot

    @asynccontextmanager
    async def _busy(self, description: str) -> AsyncIterator[None]:
        async with self.inventory.lock:
            self.action_in_progress = description
            try:
                yield
            finally:
                self.action_in_progress = None

    async def perform(self, description: str, command: Command) -> ActionResult:
        """Run one mutating command, then resynchronise the inventory.

        Args:
            description: Human-readable text shown while the command runs.
            command: Zero-argument coroutine function issuing one brew call.

        Returns:
            The trimmed output or the error text.
        """
        self.last_output = None
        self.last_error = None
        output: Optional[str] = None
        error: Optional[str] = None
        log.info("action_start", action=description)

        try:
            async with self._busy(description):
                try:
                    output = (await command()).strip() or None
                except BrewError as e:
                    error = e.message
                    self._fail(e)
            self.last_output = output
        finally:
            await self.refresh()

        log.info("action_complete", action=description, ok=error is None)

        return ActionResult(description=description, output=output, error=error)

    def _unresolved(self, name: str, kind: str) -> ActionResult:
        error = PackageNotFoundError(package=name, kind=kind)
        self._fail(error)
        return ActionResult(description=f"{kind} {name}", error=error.message)

    def _resolve_package(self, name: str, cask: bool = False) -> Optional[ActionResult]:
        snapshot = self.snapshot
        found = snapshot.cask(name) if cask else snapshot.formula(name)
        if found is None:
            return self._unresolved(name, "cask" if cask else "formula")
        return None

    def _resolve_any(self, names: Sequence[str]) -> Optional[ActionResult]:
        snapshot = self.snapshot
        for name in names:
            if snapshot.formula(name) is None and snapshot.cask(name) is None:
                return self._unresolved(name, "package")
        return None

    # Upgrade

    async def upgrade_all(self) -> ActionResult:
        return await self.perform("Upgrading all packages...", self.repo.upgrade_all)

    async def upgrade(self, name: str, cask: bool = False) -> ActionResult:
        """Upgrade one package. Without ``cask``, a name that is only
        installed as a cask is upgraded as that cask."""
        snapshot = self.snapshot
        if not cask and snapshot.formula(name) is None and snapshot.cask(name) is not None:
            cask = True
        if (missing := self._resolve_package(name, cask)) is not None:
            return missing
        return await self.perform(
            f"Upgrading {name}...", lambda: self.repo.upgrade(name, cask=cask)
        )

    async def upgrade_selected(
        self, names: Sequence[str], cask: bool = False
    ) -> ActionResult:
        names = list(names)
        if cask:
            for name in names:
                if (missing := self._resolve_package(name, cask=True)) is not None:
                    return missing
        elif (missing := self._resolve_any(names)) is not None:
            return missing
        return await self.perform(
            f"Upgrading {_label(names)}...",
            lambda: self.repo.upgrade_many(names, cask=cask),
        )

    # Install / uninstall

    async def install(self, name: str, cask: bool = False) -> ActionResult:
        return await self.perform(
            f"Installing {name}...", lambda: self.repo.install(name, cask=cask)
        )

    async def uninstall(self, name: str) -> Union[ActionResult, UninstallConfirmation]:
        return await self.uninstall_all([name])

    async def uninstall_all(
        self, names: Sequence[str]
    ) -> Union[ActionResult, UninstallConfirmation]:
        """Remove packages, or ask for confirmation if others depend on them.

        When installed formulae outside ``names`` depend on one of them,
        nothing runs: an UninstallConfirmation is stored in
        ``pending_uninstall`` and returned. Call ``confirm_uninstall`` to go
        ahead.
        """
        names = list(dict.fromkeys(names))
        if (missing := self._resolve_any(names)) is not None:
            return missing

        dependents = uninstall_risk(self.snapshot.reverse_dependencies, names)
        if dependents:
            self.pending_uninstall = UninstallConfirmation(
                packages=tuple(names), dependents=tuple(dependents)
            )
            log.info("uninstall_needs_confirmation", packages=names, dependents=dependents)
            return self.pending_uninstall

        return await self._force_uninstall(names)

    async def confirm_uninstall(self) -> Optional[ActionResult]:
        confirmation = self.pending_uninstall
        if confirmation is None:
            return None
        self.pending_uninstall = None
        return await self._force_uninstall(list(confirmation.packages))

    def cancel_uninstall(self) -> None:
        self.pending_uninstall = None

    async def _force_uninstall(self, names: List[str]) -> ActionResult:
        # The user has been warned (or nothing depends on these)
        return await self.perform(
            f"Uninstalling {_label(names)}...",
            lambda: self.repo.uninstall(names, ignore_dependencies=True),
        )

    # Pin

    async def pin(self, name: str) -> ActionResult:
        if (missing := self._resolve_package(name)) is not None:
            return missing
        return await self.perform(f"Pinning {name}...", lambda: self.repo.pin(name))

    async def unpin(self, name: str) -> ActionResult:
        if (missing := self._resolve_package(name)) is not None:
            return missing
        return await self.perform(f"Unpinning {name}...", lambda: self.repo.unpin(name))

    # Services

    async def _service(self, verb: str, label: str, name: str) -> ActionResult:
        if self.snapshot.service(name) is None:
            return self._unresolved(name, "service")
        return await self.perform(
            f"{label} {name}...", lambda: self.repo.service(verb, name)
        )

    async def start_service(self, name: str) -> ActionResult:
        return await self._service("start", "Starting", name)

    async def stop_service(self, name: str) -> ActionResult:
        return await self._service("stop", "Stopping", name)

    async def restart_service(self, name: str) -> ActionResult:
        return await self._service("restart", "Restarting", name)

    async def fetch_service_log(self, name: str) -> Optional[ServiceLog]:
        if self.snapshot.service(name) is None:
            self._unresolved(name, "service")
            return None
        try:
            async with self._busy(f"Loading log for {name}..."):
                content = await self.repo.fetch_service_log(name)
        except BrewError as e:
            self._fail(e)
            return None
        self.service_log = ServiceLog(name=name, content=content)
        return self.service_log

    def dismiss_service_log(self) -> None:
        self.service_log = None

    # Cleanup

    async def preview_cleanup(self) -> Optional[CleanupPreview]:
        """Dry-run ``brew cleanup`` and keep its file list for confirmation."""
        self.cleanup_preview = None
        self.nothing_to_clean = False
        try:
            async with self._busy("Checking for cleanable files..."):
                output = (await self.repo.cleanup(dry_run=True)).strip()
        except BrewError as e:
            self._fail(e)
            return None

        if not output:
            self.nothing_to_clean = True
            return None

        lines = [line for line in output.splitlines() if line.strip()]
        self.cleanup_preview = CleanupPreview(file_count=len(lines), details=output)
        return self.cleanup_preview

    async def confirm_cleanup(self) -> ActionResult:
        self.cleanup_preview = None
        return await self.perform("Cleaning up...", self.repo.cleanup)

    # Bundle

    def load_bundle(self, path: str | Path) -> Optional[Bundle]:
        try:
            bundle = load_bundle(path)
        except BundleError as e:
            self._fail(e)
            return None
        self.bundle = check_bundle(bundle, self.snapshot)
        return self.bundle

    def clear_bundle(self) -> None:
        self.bundle = None

    async def export_bundle(self, path: str | Path) -> ActionResult:
        path = str(Path(path).expanduser())
        return await self.perform(
            "Exporting Brewfile...", lambda: self.repo.bundle_dump(path)
        )

    async def install_bundle_missing(self) -> ActionResult:
        bundle = self.bundle
        if bundle is None:
            error = BundleError("No Brewfile loaded")
            self._fail(error)
            return ActionResult(description="Install Brewfile", error=error.message)
        return await self.perform(
            "Installing missing Brewfile entries...",
            lambda: self.repo.bundle_install(bundle.path),
        )

    # Queries

    async def search(self, query: str) -> SearchResults:
        """Search brew, leaving out what is already installed."""
        query = query.strip()
        if not query:
            self.search_results = SearchResults()
            return self.search_results
        try:
            results = await self.repo.search(query)
        except BrewError as e:
            self._fail(e)
            results = SearchResults()
        self.search_results = exclude_installed(results, self.snapshot)
        return self.search_results

    def clear_search_results(self) -> None:
        self.search_results = SearchResults()

    async def run_doctor(self) -> List[str]:
        try:
            async with self._busy("Running brew doctor..."):
                warnings = await self.repo.doctor()
        except BrewError as e:
            self._fail(e)
            return self.doctor_warnings
        self.doctor_warnings = warnings
        self.doctor_checked = True
        return warnings


def _label(names: Sequence[str]) -> str:
    return names[0] if len(names) == 1 else f"{len(names)} packages"
