"""
Tests for the process runner.

A small shell script stands in for brew so the real asyncio subprocess
path (pipe draining, exit codes, timeouts) is exercised.
"""

import os
import stat

import pytest

from brewbar.core.errors import (
    BrewCommandError,
    BrewNotFoundError,
    BrewTimeoutError,
    DecodeError,
)
from brewbar.core.shell import BrewRunner, brew_env, locate_brew


def write_brew(directory, body):
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / "brew"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


# ============================================================================
# locate_brew / brew_env
# ============================================================================


@pytest.mark.unit
def test_locate_brew_prefers_first_existing_prefix(tmp_path):
    missing = tmp_path / "missing"
    second = tmp_path / "second"
    third = tmp_path / "third"
    write_brew(second, "true")
    write_brew(third, "true")

    assert locate_brew([missing, second, third]) == str(second / "brew")


@pytest.mark.unit
def test_locate_brew_falls_back_to_bare_name(tmp_path):
    assert locate_brew([tmp_path / "nowhere"]) == "brew"


@pytest.mark.unit
def test_brew_env_prepends_executable_directory():
    env = brew_env("/opt/homebrew/bin/brew", base={"PATH": "/usr/bin:/bin"})

    assert env["PATH"] == f"/opt/homebrew/bin{os.pathsep}/usr/bin:/bin"
    assert env["HOMEBREW_NO_COLOR"] == "1"
    assert env["LANG"] == "C"


@pytest.mark.unit
def test_brew_env_leaves_path_alone_for_bare_name():
    env = brew_env("brew", base={"PATH": "/usr/bin"})

    assert env["PATH"] == "/usr/bin"


@pytest.mark.unit
def test_brew_env_does_not_mutate_base():
    base = {"PATH": "/usr/bin"}
    brew_env("/usr/local/bin/brew", base=base)

    assert base == {"PATH": "/usr/bin"}


# ============================================================================
# BrewRunner
# ============================================================================


async def test_run_returns_stdout(tmp_path):
    write_brew(tmp_path, 'echo "args: $@"')
    runner = BrewRunner(prefixes=[tmp_path])

    assert (await runner.run("info", "--json=v2")).strip() == "args: info --json=v2"


async def test_run_sees_its_own_directory_on_path(tmp_path):
    write_brew(tmp_path, 'echo "$PATH"')
    runner = BrewRunner(prefixes=[tmp_path])

    out = await runner.run("config")

    assert out.strip().split(os.pathsep)[0] == str(tmp_path)


async def test_run_drains_large_output_on_both_pipes(tmp_path):
    # Well past the usual 64 KiB pipe buffer on each stream
    write_brew(
        tmp_path,
        "i=0\nwhile [ $i -lt 20000 ]; do\n"
        "  echo 'stdout line padding padding padding'\n"
        "  echo 'stderr line padding padding padding' >&2\n"
        "  i=$((i+1))\ndone",
    )
    runner = BrewRunner(prefixes=[tmp_path], timeout=60)

    out = await runner.run("info")

    assert len(out.splitlines()) == 20000


async def test_run_raises_with_command_and_stderr_on_failure(tmp_path):
    write_brew(tmp_path, 'echo "Error: No such keg" >&2\nexit 1')
    runner = BrewRunner(prefixes=[tmp_path])

    with pytest.raises(BrewCommandError) as excinfo:
        await runner.run("uninstall", "ghost")

    error = excinfo.value
    assert error.context["command"] == "brew uninstall ghost"
    assert error.context["returncode"] == 1
    assert "No such keg" in error.stderr
    assert "brew uninstall ghost" in error.message
    assert "No such keg" in error.message


async def test_run_allowing_failure_returns_stdout_despite_exit_code(tmp_path):
    write_brew(tmp_path, 'echo "Warning: something"\necho oops >&2\nexit 1')
    runner = BrewRunner(prefixes=[tmp_path])

    out = await runner.run_allowing_failure("doctor")

    assert out.strip() == "Warning: something"


async def test_run_json_parses_output(tmp_path):
    write_brew(tmp_path, """echo '{"formulae": [], "casks": []}'""")
    runner = BrewRunner(prefixes=[tmp_path])

    assert await runner.run_json("info", adapter="installed") == {"formulae": [], "casks": []}


async def test_run_json_raises_decode_error_naming_adapter(tmp_path):
    write_brew(tmp_path, "echo not json")
    runner = BrewRunner(prefixes=[tmp_path])

    with pytest.raises(DecodeError) as excinfo:
        await runner.run_json("outdated", adapter="outdated")

    assert excinfo.value.adapter == "outdated"


async def test_run_capture_times_out_and_kills(tmp_path):
    write_brew(tmp_path, "exec sleep 10")
    runner = BrewRunner(prefixes=[tmp_path])

    with pytest.raises(BrewTimeoutError) as excinfo:
        await runner.run_capture("upgrade", timeout=1)

    assert excinfo.value.context["timeout"] == 1


async def test_missing_executable_raises_not_found(tmp_path):
    runner = BrewRunner(executable=str(tmp_path / "no-such-brew"))

    with pytest.raises(BrewNotFoundError):
        await runner.run("config")


async def test_unexecutable_binary_raises_not_found(tmp_path):
    script = tmp_path / "brew"
    script.write_bytes(b"\x00\x01\x02garbage")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    runner = BrewRunner(prefixes=[tmp_path])

    with pytest.raises(BrewNotFoundError) as excinfo:
        await runner.run("config")

    assert "error" in excinfo.value.context
