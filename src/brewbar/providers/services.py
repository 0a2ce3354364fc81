"""Services adapter: ``brew services list --json`` and service logs."""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import List, Optional

from brewbar.analysis.status import derive_service_status
from brewbar.core.errors import DecodeError, LogReadError
from brewbar.core.logging import get_logger
from brewbar.core.models import Service
from brewbar.providers.base import Runner, decode_items

log = get_logger(__name__)

ADAPTER = "services"
LOG_TAIL_LINES = 50


def _optional_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    return int(value)


def service_from_json(s: dict) -> Service:
    return Service(
        name=s["name"],
        status=derive_service_status(s.get("status")),
        pid=_optional_int(s.get("pid")),
        exit_code=_optional_int(s.get("exit_code")),
        user=s.get("user"),
        file=s.get("file"),
    )


async def fetch_services(runner: Runner) -> List[Service]:
    """List brew-managed services sorted by name."""
    data = await runner.run_json("services", "list", "--json", adapter=ADAPTER)
    services = decode_items(data, service_from_json, ADAPTER)
    log.info("services_fetch_complete", count=len(services))

    return sorted(services, key=lambda s: s.name)


def tail_file(path: Path, lines: int = LOG_TAIL_LINES) -> str:
    with path.open(encoding="utf-8", errors="replace") as fh:
        return "\n".join(line.rstrip("\n") for line in deque(fh, maxlen=lines))


async def fetch_service_log(
    runner: Runner, name: str, lines: int = LOG_TAIL_LINES
) -> str:
    """Return the last ``lines`` lines of a service's log file.

    A missing log path, missing file or empty file produces a short
    message instead of an error.

    Raises:
        LogReadError: If the log file exists but cannot be read.
    """
    data = await runner.run_json(
        "services", "info", name, "--json", adapter="service_info"
    )
    if not isinstance(data, list):
        raise DecodeError(adapter="service_info", error="expected a list")

    info = data[0] if data and isinstance(data[0], dict) else {}
    log_path = info.get("log_path")
    if not log_path:
        return f"No log file found for {name}."

    path = Path(log_path)
    if not path.exists():
        return f"Log file not found at {log_path}."

    try:
        tail = tail_file(path, lines)
    except OSError as e:
        log.error("service_log_read_failed", service=name, path=log_path, error=str(e))
        raise LogReadError(path=log_path, error=str(e)) from e
    log.debug("service_log_read", service=name, path=log_path)

    return tail if tail.strip() else "Log file is empty."
