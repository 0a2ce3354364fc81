"""Derive service status from brew's raw status text."""

from __future__ import annotations

from typing import Optional

from brewbar.core.models import ServiceStatus

STOPPED_VALUES = frozenset({"stopped", "none", ""})


def derive_service_status(raw: Optional[str]) -> ServiceStatus:
    """Map a raw ``brew services`` status to a ServiceStatus.

    Case-insensitive and total: a missing or empty value means stopped,
    anything unrecognised is UNKNOWN rather than an error.
    """
    value = (raw or "").strip().lower() if isinstance(raw, str) else ""

    if value == "started":
        return ServiceStatus.STARTED
    if value in STOPPED_VALUES:
        return ServiceStatus.STOPPED
    if value == "error":
        return ServiceStatus.ERROR

    return ServiceStatus.UNKNOWN
