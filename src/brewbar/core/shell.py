"""Asynchronous brew command execution with timeout and JSON parsing."""

from __future__ import annotations

import asyncio
import json
import os
import time
from pathlib import Path
from typing import Any, Iterable, Optional

from brewbar.core.config import BREW_PREFIXES
from brewbar.core.errors import (
    BrewCommandError,
    BrewNotFoundError,
    BrewTimeoutError,
    DecodeError,
)
from brewbar.core.logging import get_logger

log = get_logger(__name__)

ENV_OVERRIDES = {
    "LANG": "C",
    "HOMEBREW_NO_COLOR": "1",
    "HOMEBREW_NO_AUTO_UPDATE": "1",
    "HOMEBREW_NO_ENV_HINTS": "1",
}


def locate_brew(prefixes: Iterable[Path] = BREW_PREFIXES) -> str:
    """Find the brew executable in the well-known install prefixes.

    Falls back to the bare name so the ambient PATH decides.
    """
    for prefix in prefixes:
        candidate = Path(prefix) / "brew"
        if candidate.exists():
            return str(candidate)
    return "brew"


def brew_env(executable: str, base: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Build the environment brew runs with.

    The executable's own directory is put first on PATH so brew finds its
    helper binaries.

    Args:
        executable: Path (or bare name) of the brew executable.
        base: Environment to start from; defaults to os.environ.

    Returns:
        A new environment dictionary.
    """
    env = dict(os.environ if base is None else base)
    if os.path.isabs(executable):
        bin_dir = os.path.dirname(executable)
        path = env.get("PATH")
        env["PATH"] = f"{bin_dir}{os.pathsep}{path}" if path else bin_dir
    env.update(ENV_OVERRIDES)

    return env


class BrewRunner:
    """Runs brew as a subprocess and captures its output.

    Both pipes are drained concurrently with ``communicate()`` before the
    exit status is read, so large outputs (``brew info --json``) cannot fill
    the pipe buffer and block the child.
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        prefixes: Iterable[Path] = BREW_PREFIXES,
        timeout: Optional[int] = 120,
    ) -> None:
        self.executable = executable or locate_brew(prefixes)
        self.env = brew_env(self.executable)
        self.timeout = timeout

    def command_line(self, args: Iterable[str]) -> str:
        return " ".join(["brew", *args])

    async def run_capture(
        self, *args: str, timeout: Optional[int] = None
    ) -> tuple[str, str, int]:
        """Run brew asynchronously with optional timeout.

        Args:
            *args: Arguments passed to brew.
            timeout: Timeout in seconds; defaults to the runner's timeout.

        Returns:
            A tuple of (stdout, stderr, returncode).

        Raises:
            BrewTimeoutError: If the command times out.
            BrewNotFoundError: If the executable cannot be started.
        """
        timeout = self.timeout if timeout is None else timeout
        command = self.command_line(args)
        start = time.perf_counter()
        log.debug("command_start", command=command, timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.env,
            )
        except OSError as e:
            log.error("command_not_startable", command=command, error=str(e))
            raise BrewNotFoundError(
                executable=self.executable, context={"error": str(e)}
            ) from e

        try:
            out, err = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            log.error(
                "command_timeout",
                command=command,
                timeout=timeout,
                duration_ms=duration_ms
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise BrewTimeoutError(
                command=command,
                timeout=timeout,
                context={"duration_ms": duration_ms}
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "command_complete",
            command=command,
            returncode=process.returncode,
            duration_ms=duration_ms
        )

        return (
            out.decode(errors="replace"),
            err.decode(errors="replace"),
            process.returncode,
        )

    async def run(self, *args: str, timeout: Optional[int] = None) -> str:
        """Run brew and return stdout, failing on a non-zero exit.

        Raises:
            BrewCommandError: If brew exits non-zero.
        """
        out, err, code = await self.run_capture(*args, timeout=timeout)

        if code != 0:
            command = self.command_line(args)
            log.error(
                "command_failed",
                command=command,
                error=err.strip(),
                returncode=code
            )
            raise BrewCommandError(
                command=command,
                returncode=code,
                error=err.strip(),
            )

        return out

    async def run_allowing_failure(
        self, *args: str, timeout: Optional[int] = None
    ) -> str:
        """Run brew and return stdout whatever the exit status.

        For diagnostic commands such as ``brew doctor`` that exit 1 when
        they have something to report.
        """
        out, _, code = await self.run_capture(*args, timeout=timeout)
        if code != 0:
            log.debug(
                "command_nonzero_ignored",
                command=self.command_line(args),
                returncode=code
            )
        return out

    async def run_json(
        self, *args: str, adapter: str, timeout: Optional[int] = None
    ) -> Any:
        """Run brew and parse its JSON output.

        Args:
            *args: Arguments passed to brew.
            adapter: Name of the data source, reported on decode failures.
            timeout: Timeout in seconds.

        Returns:
            Parsed JSON output.

        Raises:
            BrewCommandError: If brew exits non-zero.
            DecodeError: If the output is not valid JSON.
        """
        out = await self.run(*args, timeout=timeout)

        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            log.error(
                "json_parse_failed",
                command=self.command_line(args),
                adapter=adapter,
                error=str(e),
            )
            raise DecodeError(
                adapter=adapter,
                error=str(e),
                context={"output_preview": out[:200]},
            ) from e
