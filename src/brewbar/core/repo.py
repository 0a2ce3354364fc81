"""Repository of brew commands: data sources and mutations."""

from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence, Tuple

from brewbar.core.config import Settings
from brewbar.core.logging import get_logger
from brewbar.core.models import Cask, Formula, SearchResults, Service
from brewbar.core.shell import BrewRunner
from brewbar.providers import config, doctor, installed, outdated, search, services
from brewbar.providers.base import Runner

log = get_logger(__name__)


class Repository:
    """One method per brew invocation BrewBar makes.

    Reads use the query timeout; mutations use the longer command timeout.
    """

    def __init__(
        self, runner: Optional[Runner] = None, settings: Optional[Settings] = None
    ) -> None:
        self.settings = settings or Settings()
        self.runner = runner or BrewRunner(
            prefixes=self.settings.brew_prefixes, timeout=self.settings.query_timeout
        )

    # Data sources

    async def fetch_installed(self) -> Tuple[List[Formula], List[Cask]]:
        return await installed.fetch_installed(self.runner)

    async def fetch_outdated(self) -> Tuple[List[Formula], List[Cask]]:
        return await outdated.fetch_outdated(self.runner)

    async def fetch_services(self) -> List[Service]:
        return await services.fetch_services(self.runner)

    async def fetch_config(self) -> Dict[str, str]:
        return await config.fetch_config(self.runner)

    async def fetch_service_log(self, name: str) -> str:
        return await services.fetch_service_log(
            self.runner, name, lines=self.settings.log_tail_lines
        )

    async def search(self, query: str) -> SearchResults:
        return await search.search(self.runner, query)

    async def doctor(self) -> List[str]:
        return await doctor.run_doctor(self.runner)

    # Mutations

    async def _command(self, *args: str) -> str:
        """Run one mutating brew command and return its stdout."""
        start = time.perf_counter()
        log.info("mutation_start", command=" ".join(args))

        out = await self.runner.run(*args, timeout=self.settings.command_timeout)

        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info("mutation_complete", command=" ".join(args), duration_ms=duration_ms)

        return out

    async def upgrade_all(self) -> str:
        return await self._command("upgrade")

    async def upgrade(self, name: str, cask: bool = False) -> str:
        return await self._command("upgrade", *(["--cask"] if cask else []), name)

    async def upgrade_many(self, names: Sequence[str], cask: bool = False) -> str:
        return await self._command("upgrade", *(["--cask"] if cask else []), *names)

    async def install(self, name: str, cask: bool = False) -> str:
        return await self._command("install", *(["--cask"] if cask else []), name)

    async def uninstall(
        self, names: Sequence[str], ignore_dependencies: bool = False
    ) -> str:
        flags = ["--ignore-dependencies"] if ignore_dependencies else []
        return await self._command("uninstall", *flags, *names)

    async def pin(self, name: str) -> str:
        return await self._command("pin", name)

    async def unpin(self, name: str) -> str:
        return await self._command("unpin", name)

    async def service(self, verb: str, name: str) -> str:
        """Run ``brew services <verb> <name>`` for start, stop or restart."""
        if verb not in ("start", "stop", "restart"):
            raise ValueError(f"Unsupported service action: {verb}")
        return await self._command("services", verb, name)

    async def cleanup(self, dry_run: bool = False) -> str:
        return await self._command("cleanup", "--prune=all", *(["-n"] if dry_run else []))

    async def bundle_dump(self, path: str) -> str:
        return await self._command("bundle", "dump", "--force", f"--file={path}")

    async def bundle_install(self, path: str) -> str:
        return await self._command("bundle", "install", f"--file={path}")
