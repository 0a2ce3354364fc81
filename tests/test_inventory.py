"""
Tests for Inventory: concurrent fan-out, snapshot replacement, failure
handling, re-entrancy and change notification.
"""

import asyncio

import pytest

from conftest import CONFIG_ARGS, INSTALLED_ARGS, OUTDATED_ARGS, SERVICES_ARGS

from brewbar.core.errors import BrewCommandError, BrewTimeoutError, DecodeError, RefreshError
from brewbar.core.inventory import Inventory
from brewbar.core.models import InventorySnapshot, ServiceStatus
from brewbar.core.repo import Repository

ALL_SOURCES = (INSTALLED_ARGS, OUTDATED_ARGS, SERVICES_ARGS, CONFIG_ARGS)


@pytest.fixture
def inventory(sample_inventory, settings):
    return Inventory(Repository(runner=sample_inventory, settings=settings), settings=settings)


async def settle(rounds=10):
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================================
# Refresh
# ============================================================================


async def test_initial_state_is_empty(inventory):
    snapshot = inventory.snapshot

    assert isinstance(snapshot, InventorySnapshot)
    assert snapshot.formulae == () and snapshot.casks == ()
    assert snapshot.outdated_count == 0
    assert inventory.last_error is None
    assert inventory.loaded is False
    assert inventory.is_refreshing is False


async def test_refresh_builds_merged_snapshot(inventory):
    snapshot = await inventory.refresh()

    assert inventory.snapshot is snapshot
    assert inventory.loaded is True
    assert [f.name for f in snapshot.formulae] == [
        "bun", "gettext", "git", "openssl@3", "pcre2", "python@3.12", "uv",
    ]
    assert [c.token for c in snapshot.casks] == ["firefox", "zoom"]
    assert [f.name for f in snapshot.outdated_formulae] == ["git"]
    assert snapshot.outdated_formulae[0].latest_version == "1.1"
    assert [c.token for c in snapshot.outdated_casks] == ["zoom"]
    assert snapshot.service("postgresql@16").status is ServiceStatus.STARTED
    assert snapshot.service("redis").status is ServiceStatus.STOPPED
    assert snapshot.config["HOMEBREW_PREFIX"] == "/opt/homebrew"
    assert snapshot.taps == ["homebrew/cask", "homebrew/core", "oven-sh/bun"]


async def test_refresh_queries_every_source_concurrently(inventory, sample_inventory, gate):
    sample_inventory.gates[INSTALLED_ARGS] = gate

    task = asyncio.create_task(inventory.refresh())
    await settle()

    # all four sources were started while the first was still blocked
    assert set(sample_inventory.calls) == set(ALL_SOURCES)
    assert inventory.is_refreshing is True
    assert inventory.loaded is False

    gate.set()
    await task

    assert inventory.is_refreshing is False
    assert inventory.loaded is True


async def test_refresh_derives_dependency_and_redundancy_views(inventory, settings):
    tool_dir = settings.tool_search_paths[0]
    tool_dir.mkdir(parents=True)
    (tool_dir / "uv").touch()

    snapshot = await inventory.refresh()

    assert snapshot.reverse_dependencies["pcre2"] == ("git",)
    assert snapshot.reverse_dependencies["openssl@3"] == ("python@3.12",)
    assert snapshot.dependents_of("gettext") == ["git"]
    assert [(r.name, r.rule.tool_name) for r in snapshot.redundant] == [("python@3.12", "uv")]
    assert dict(snapshot.tool_paths) == {"uv": str(tool_dir / "uv")}


async def test_snapshot_mappings_are_read_only(inventory):
    snapshot = await inventory.refresh()

    with pytest.raises(TypeError):
        snapshot.config["HOMEBREW_VERSION"] = "0"


async def test_refresh_replaces_snapshot_wholesale(inventory):
    first = await inventory.refresh()
    second = await inventory.refresh()

    assert second is not first
    assert second.formulae == first.formulae


# ============================================================================
# Failure
# ============================================================================


@pytest.mark.parametrize(
    "error",
    [
        BrewCommandError(command="brew outdated --json=v2", returncode=1, error="boom"),
        BrewTimeoutError(command="brew outdated --json=v2", timeout=120),
    ],
)
async def test_failed_source_keeps_previous_snapshot(inventory, sample_inventory, error):
    previous = await inventory.refresh()
    sample_inventory.set(OUTDATED_ARGS, error)

    with pytest.raises(RefreshError) as excinfo:
        await inventory.refresh()

    assert excinfo.value.cause is error
    assert inventory.snapshot is previous
    assert inventory.last_error is excinfo.value
    assert inventory.is_refreshing is False


async def test_decode_failure_aborts_refresh(inventory, sample_inventory):
    sample_inventory.set_json(SERVICES_ARGS, {"not": "a list"})

    with pytest.raises(RefreshError) as excinfo:
        await inventory.refresh()

    assert isinstance(excinfo.value.cause, DecodeError)
    assert excinfo.value.context["adapter"] == "services"
    assert inventory.loaded is False


async def test_failure_lets_remaining_sources_finish(inventory, sample_inventory, gate):
    sample_inventory.set(CONFIG_ARGS, BrewCommandError(command="brew config"))
    sample_inventory.gates[INSTALLED_ARGS] = gate

    with pytest.raises(RefreshError):
        await inventory.refresh()

    # the blocked source is still running; releasing it must not raise anywhere
    gate.set()
    await settle()
    assert sample_inventory.count(*INSTALLED_ARGS) == 1


async def test_success_after_failure_clears_last_error(inventory, sample_inventory):
    good = sample_inventory.responses[CONFIG_ARGS]
    sample_inventory.set(CONFIG_ARGS, BrewCommandError(command="brew config"))
    with pytest.raises(RefreshError):
        await inventory.refresh()

    sample_inventory.set(CONFIG_ARGS, good)
    await inventory.refresh()

    assert inventory.last_error is None


# ============================================================================
# Re-entrancy
# ============================================================================


async def test_refresh_while_refreshing_is_a_no_op(inventory, sample_inventory, gate):
    before = inventory.snapshot
    sample_inventory.gates[INSTALLED_ARGS] = gate

    first = asyncio.create_task(inventory.refresh())
    await settle()

    second = await inventory.refresh()

    assert second is before
    gate.set()
    result = await first

    assert result is inventory.snapshot
    for args in ALL_SOURCES:
        assert sample_inventory.count(*args) == 1


async def test_refresh_waits_for_lock_holder(inventory, sample_inventory):
    async with inventory.lock:
        task = asyncio.create_task(inventory.refresh())
        await settle()
        assert inventory.is_refreshing is True
        assert sample_inventory.calls == []

    await task
    assert sample_inventory.count(*INSTALLED_ARGS) == 1


# ============================================================================
# Subscriptions
# ============================================================================


async def test_subscribers_receive_new_snapshots(inventory):
    received = []

    async def on_async(snapshot):
        received.append(("async", snapshot))

    unsubscribe = inventory.subscribe(lambda s: received.append(("sync", s)))
    inventory.subscribe(on_async)

    snapshot = await inventory.refresh()

    assert received == [("sync", snapshot), ("async", snapshot)]

    unsubscribe()
    await inventory.refresh()

    assert [kind for kind, _ in received] == ["sync", "async", "async"]


async def test_error_subscribers_receive_refresh_errors(inventory, sample_inventory, mocker):
    on_snapshot = mocker.Mock()
    on_error = mocker.Mock()
    inventory.subscribe(on_snapshot, on_error)
    sample_inventory.set(CONFIG_ARGS, BrewCommandError(command="brew config"))

    with pytest.raises(RefreshError) as excinfo:
        await inventory.refresh()

    on_error.assert_called_once_with(excinfo.value)
    on_snapshot.assert_not_called()


async def test_failing_listener_does_not_break_refresh(inventory):
    def broken(snapshot):
        raise RuntimeError("listener bug")

    seen = []
    inventory.subscribe(broken)
    inventory.subscribe(seen.append)

    snapshot = await inventory.refresh()

    assert seen == [snapshot]


# ============================================================================
# Auto refresh
# ============================================================================


async def test_auto_refresh_runs_until_stopped(inventory, sample_inventory):
    inventory.start_auto_refresh(interval=0.01)

    for _ in range(100):
        if sample_inventory.count(*INSTALLED_ARGS) >= 2:
            break
        await asyncio.sleep(0.01)

    await inventory.stop_auto_refresh()
    calls = sample_inventory.count(*INSTALLED_ARGS)

    assert calls >= 2
    await asyncio.sleep(0.05)
    assert sample_inventory.count(*INSTALLED_ARGS) == calls


async def test_auto_refresh_survives_failures(inventory, sample_inventory):
    sample_inventory.set(CONFIG_ARGS, BrewCommandError(command="brew config"))
    task = inventory.start_auto_refresh(interval=0.01)

    for _ in range(100):
        if sample_inventory.count(*CONFIG_ARGS) >= 2:
            break
        await asyncio.sleep(0.01)

    assert not task.done()
    assert isinstance(inventory.last_error, RefreshError)
    await inventory.stop_auto_refresh()


async def test_start_auto_refresh_is_idempotent(inventory):
    first = inventory.start_auto_refresh(interval=60)

    assert inventory.start_auto_refresh(interval=60) is first
    await inventory.stop_auto_refresh()
