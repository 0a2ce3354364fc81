"""
Shared fixtures for the BrewBar test suite.

Provides a scripted stand-in for BrewRunner plus builders for the JSON
documents brew emits, so no test ever starts a real subprocess.
"""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest

from brewbar.core.config import Settings
from brewbar.core.errors import BrewCommandError
from brewbar.core.logging import configure_logging

configure_logging(
    level="DEBUG", log_file=Path(tempfile.gettempdir()) / "brewbar-tests.log"
)


class FakeRunner:
    """Runner double answering brew invocations from a script.

    ``responses`` maps an argument tuple to stdout text, or to an exception
    instance to raise. ``gates`` maps an argument tuple to an asyncio.Event
    the call waits on before answering.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.gates = {}
        self.calls = []

    def set(self, args, response):
        self.responses[tuple(args)] = response

    def set_json(self, args, payload):
        self.responses[tuple(args)] = json.dumps(payload)

    async def _answer(self, args):
        self.calls.append(args)
        gate = self.gates.get(args)
        if gate is not None:
            await gate.wait()
        if args not in self.responses:
            raise BrewCommandError(
                command="brew " + " ".join(args), returncode=1, error="unscripted"
            )
        response = self.responses[args]
        if isinstance(response, BaseException):
            raise response
        return response

    async def run(self, *args, timeout=None):
        return await self._answer(args)

    async def run_allowing_failure(self, *args, timeout=None):
        return await self._answer(args)

    async def run_json(self, *args, adapter, timeout=None):
        return json.loads(await self._answer(args))

    def count(self, *args):
        return sum(1 for call in self.calls if call == args)


def formula_json(
    name,
    version="1.0",
    deps=(),
    build_deps=(),
    on_request=True,
    tap="homebrew/core",
    full_name=None,
    **extra,
):
    data = {
        "name": name,
        "full_name": full_name or name,
        "desc": f"{name} description",
        "homepage": f"https://example.com/{name}",
        "installed": [{"version": version, "installed_on_request": on_request}],
        "outdated": False,
        "pinned": False,
        "license": "MIT",
        "tap": tap,
        "dependencies": list(deps),
        "build_dependencies": list(build_deps),
    }
    data.update(extra)
    return data


def cask_json(token, version="1.0", **extra):
    data = {
        "token": token,
        "name": [token.title()],
        "desc": None,
        "homepage": None,
        "installed": version,
        "outdated": False,
        "tap": "homebrew/cask",
        "auto_updates": False,
    }
    data.update(extra)
    return data


INSTALLED_ARGS = ("info", "--json=v2", "--installed")
OUTDATED_ARGS = ("outdated", "--json=v2")
SERVICES_ARGS = ("services", "list", "--json")
CONFIG_ARGS = ("config",)


def script_inventory(runner, formulae=(), casks=(), outdated=None, services=(), config=""):
    runner.set_json(INSTALLED_ARGS, {"formulae": list(formulae), "casks": list(casks)})
    runner.set_json(OUTDATED_ARGS, outdated or {"formulae": [], "casks": []})
    runner.set_json(SERVICES_ARGS, list(services))
    runner.set(CONFIG_ARGS, config)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    return Settings(tool_search_paths=(tmp_path / "bin",))


@pytest.fixture
def sample_inventory(fake_runner):
    """Runner scripted with a small but realistic installation."""
    script_inventory(
        fake_runner,
        formulae=[
            formula_json("git", deps=["gettext", "pcre2"]),
            formula_json("gettext", on_request=False),
            formula_json("pcre2", on_request=False),
            formula_json("python@3.12", deps=["openssl@3"], on_request=False),
            formula_json("openssl@3", on_request=False),
            formula_json("uv"),
            formula_json(
                "bun", tap="oven-sh/bun", full_name="oven-sh/bun/bun"
            ),
        ],
        casks=[cask_json("firefox", auto_updates=True), cask_json("zoom")],
        outdated={
            "formulae": [
                {
                    "name": "git",
                    "installed_versions": ["1.0"],
                    "current_version": "1.1",
                    "pinned": False,
                    "pinned_version": None,
                }
            ],
            "casks": [
                {"name": "zoom", "installed_versions": ["1.0"], "current_version": "2.0"}
            ],
        },
        services=[
            {"name": "postgresql@16", "status": "started", "pid": 42,
             "exit_code": None, "user": "dev", "file": "/tmp/pg.plist"},
            {"name": "redis", "status": "none", "pid": None,
             "exit_code": None, "user": None, "file": None},
        ],
        config="HOMEBREW_VERSION: 4.4.0\nHOMEBREW_PREFIX: /opt/homebrew\nCPU: octa-core",
    )
    return fake_runner


@pytest.fixture
def gate():
    return asyncio.Event()
