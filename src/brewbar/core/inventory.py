"""Concurrent fetch and merge of the brew inventory into snapshots."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, List, Optional, Union

from brewbar.analysis.dependencies import reverse_dependencies
from brewbar.analysis.redundancy import detect_redundancies
from brewbar.core.config import Settings
from brewbar.core.errors import RefreshError
from brewbar.core.logging import get_logger
from brewbar.core.models import InventorySnapshot
from brewbar.core.repo import Repository
from brewbar.providers.tools import resolve_tool_paths

log = get_logger(__name__)

Listener = Callable[[Any], Union[None, Awaitable[None]]]


class Inventory:
    """Owns the current InventorySnapshot and refreshes it.

    ``snapshot`` is replaced wholesale on success and left untouched on
    failure. Refreshes never overlap: a request made while one is running
    returns immediately with the current snapshot.

    ``lock`` serialises refreshes with mutating commands (see AppStore).
    """

    def __init__(
        self, repo: Optional[Repository] = None, settings: Optional[Settings] = None
    ) -> None:
        self.settings = settings or (repo.settings if repo else Settings())
        self.repo = repo or Repository(settings=self.settings)
        self.lock = asyncio.Lock()
        self.last_error: Optional[RefreshError] = None
        self._snapshot = InventorySnapshot()
        self._loaded = False
        self._refreshing = False
        self._listeners: List[Listener] = []
        self._error_listeners: List[Listener] = []
        self._timer: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> InventorySnapshot:
        return self._snapshot

    @property
    def loaded(self) -> bool:
        """True once at least one refresh has succeeded."""
        return self._loaded

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def subscribe(
        self, on_snapshot: Listener, on_error: Optional[Listener] = None
    ) -> Callable[[], None]:
        """Register callbacks for new snapshots and refresh failures.

        Callbacks may be plain functions or coroutine functions.

        Returns:
            A callable that removes the subscription.
        """
        self._listeners.append(on_snapshot)
        if on_error is not None:
            self._error_listeners.append(on_error)

        def unsubscribe() -> None:
            if on_snapshot in self._listeners:
                self._listeners.remove(on_snapshot)
            if on_error is not None and on_error in self._error_listeners:
                self._error_listeners.remove(on_error)

        return unsubscribe

    async def _notify(self, listeners: List[Listener], value: Any) -> None:
        for listener in list(listeners):
            try:
                result = listener(value)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error("listener_failed", listener=repr(listener), error=str(e), exc_info=True)

    async def refresh(self) -> InventorySnapshot:
        """Fetch every source concurrently and publish a new snapshot.

        Returns:
            The new snapshot, or the current one if a refresh was
            already running.

        Raises:
            RefreshError: If any source failed. The previous snapshot is kept.
        """
        if self._refreshing:
            log.debug("refresh_skipped", reason="in_flight")
            return self._snapshot

        self._refreshing = True
        try:
            async with self.lock:
                snapshot = await self._fetch()
        except RefreshError as e:
            self.last_error = e
            await self._notify(self._error_listeners, e)
            raise
        finally:
            self._refreshing = False

        self._snapshot = snapshot
        self._loaded = True
        self.last_error = None
        await self._notify(self._listeners, snapshot)

        return snapshot

    async def _fetch(self) -> InventorySnapshot:
        start = time.perf_counter()
        log.info("refresh_start")

        tasks = [
            asyncio.ensure_future(self.repo.fetch_installed()),
            asyncio.ensure_future(self.repo.fetch_outdated()),
            asyncio.ensure_future(self.repo.fetch_services()),
            asyncio.ensure_future(self.repo.fetch_config()),
        ]
        try:
            (formulae, casks), (old_formulae, old_casks), services, config = (
                await asyncio.gather(*tasks)
            )
        except Exception as e:
            # Remaining sources run to completion; their results are dropped.
            for task in tasks:
                task.add_done_callback(_consume_result)
            duration_ms = int((time.perf_counter() - start) * 1000)
            log.error(
                "refresh_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            raise RefreshError(e) from e

        index = reverse_dependencies(formulae)
        snapshot = InventorySnapshot(
            formulae=tuple(formulae),
            casks=tuple(casks),
            outdated_formulae=tuple(old_formulae),
            outdated_casks=tuple(old_casks),
            services=tuple(services),
            config=config,
            redundant=tuple(detect_redundancies(formulae, index=index)),
            tool_paths=resolve_tool_paths(
                (f.name for f in formulae), self.settings.tool_search_paths
            ),
            reverse_dependencies=index,
        )

        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "refresh_complete",
            formulae=len(snapshot.formulae),
            casks=len(snapshot.casks),
            outdated=snapshot.outdated_count,
            services=len(snapshot.services),
            redundant=len(snapshot.redundant),
            duration_ms=duration_ms,
        )

        return snapshot

    # Background refresh

    def start_auto_refresh(self, interval: Optional[float] = None) -> asyncio.Task:
        """Refresh every ``interval`` seconds until stopped.

        Must be called from a running event loop. Failures are logged and
        recorded in ``last_error``; the loop keeps going.
        """
        if self._timer is not None and not self._timer.done():
            return self._timer

        interval = self.settings.refresh_interval if interval is None else interval
        self._timer = asyncio.create_task(self._auto_refresh(interval))
        log.info("auto_refresh_started", interval=interval)

        return self._timer

    async def stop_auto_refresh(self) -> None:
        if self._timer is None:
            return
        self._timer.cancel()
        try:
            await self._timer
        except asyncio.CancelledError:
            pass
        self._timer = None
        log.info("auto_refresh_stopped")

    async def _auto_refresh(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except RefreshError as e:
                log.warning("auto_refresh_failed", error=e.message)


def _consume_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()
