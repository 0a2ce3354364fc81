"""Protocol and decode helpers shared by the data source adapters."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, TypeVar

from brewbar.core.errors import DecodeError

T = TypeVar("T")


class Runner(Protocol):
    """Protocol for whatever executes brew (BrewRunner or a test double)."""

    async def run(self, *args: str, timeout: Optional[int] = None) -> str:
        """Run brew and return stdout, raising on failure."""
        ...

    async def run_allowing_failure(self, *args: str, timeout: Optional[int] = None) -> str:
        """Run brew and return stdout whatever the exit status."""
        ...

    async def run_json(self, *args: str, adapter: str, timeout: Optional[int] = None) -> Any:
        """Run brew and return parsed JSON."""
        ...


def decode_items(
    items: Any, mapper: Callable[[dict], T], adapter: str
) -> List[T]:
    """Map every raw item with ``mapper``, reporting bad shapes as DecodeError.

    Args:
        items: The raw JSON array.
        mapper: Function turning one raw object into a record.
        adapter: Adapter name for error reporting.

    Returns:
        The decoded records, in input order.
    """
    if not isinstance(items, list):
        raise DecodeError(adapter=adapter, error=f"expected a list, got {type(items).__name__}")

    records: List[T] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise DecodeError(adapter=adapter, error=f"item {i} is not an object")
        try:
            records.append(mapper(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(
                adapter=adapter,
                error=f"item {i}: {type(e).__name__}: {e}",
            ) from e

    return records


def section(data: Any, key: str, adapter: str) -> Any:
    """Fetch a top-level array from a JSON document."""
    if not isinstance(data, dict):
        raise DecodeError(adapter=adapter, error="expected a JSON object")
    if key not in data:
        raise DecodeError(adapter=adapter, error=f"missing '{key}'")
    return data[key]
