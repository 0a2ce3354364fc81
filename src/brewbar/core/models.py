"""Data models for the Homebrew inventory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

UNKNOWN_VERSION = "unknown"


class PackageKind(Enum):
    """Enumeration of package kinds."""

    FORMULA = "formula"
    CASK = "cask"


@dataclass(frozen=True)
class Formula:
    """An installed formula, keyed by ``name``."""

    name: str
    full_name: str = ""
    version: str = UNKNOWN_VERSION
    latest_version: Optional[str] = None
    description: Optional[str] = None
    homepage: Optional[str] = None
    outdated: bool = False
    pinned: bool = False
    license: Optional[str] = None
    tap: Optional[str] = None
    dependencies: tuple[str, ...] = ()
    build_dependencies: tuple[str, ...] = ()
    installed_on_request: bool = True

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class Cask:
    """An installed cask, keyed by ``token``."""

    token: str
    name: str = ""
    version: str = UNKNOWN_VERSION
    latest_version: Optional[str] = None
    description: Optional[str] = None
    homepage: Optional[str] = None
    outdated: bool = False
    tap: Optional[str] = None
    auto_updates: bool = False

    @property
    def key(self) -> str:
        return self.token


class ServiceStatus(Enum):
    """State of a brew-managed service."""

    STARTED = "started"
    STOPPED = "stopped"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Service:
    """A service reported by ``brew services list``."""

    name: str
    status: ServiceStatus = ServiceStatus.STOPPED
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    user: Optional[str] = None
    file: Optional[str] = None


class PatternKind(Enum):
    PREFIX = "prefix"
    EXACT = "exact"


@dataclass(frozen=True)
class Pattern:
    """A formula-name matcher used by redundancy rules."""

    kind: PatternKind
    value: str

    @classmethod
    def prefix(cls, value: str) -> Pattern:
        return cls(PatternKind.PREFIX, value)

    @classmethod
    def exact(cls, value: str) -> Pattern:
        return cls(PatternKind.EXACT, value)

    def matches(self, name: str) -> bool:
        if self.kind is PatternKind.PREFIX:
            return name.startswith(self.value)
        return name == self.value


@dataclass(frozen=True)
class RedundancyRule:
    """Formulae made obsolete once ``tool_name`` is installed."""

    tool_name: str
    description: str
    patterns: tuple[Pattern, ...]

    def matches(self, name: str) -> bool:
        return any(p.matches(name) for p in self.patterns)


@dataclass(frozen=True)
class RedundantPackage:
    """A formula claimed by one redundancy rule."""

    formula: Formula
    rule: RedundancyRule
    dependents: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.formula.name


class BundleEntryType(Enum):
    """Directive keywords understood in a Brewfile."""

    BREW = "brew"
    CASK = "cask"
    TAP = "tap"
    MAS = "mas"
    VSCODE = "vscode"
    WHALEBREW = "whalebrew"

    @property
    def label(self) -> str:
        if self is BundleEntryType.BREW:
            return "formula"
        return self.value

    @property
    def is_checkable(self) -> bool:
        """Only formulae and casks are cross-referenced against the inventory."""
        return self in (BundleEntryType.BREW, BundleEntryType.CASK)


@dataclass(frozen=True)
class BundleEntry:
    """One Brewfile directive, identified by (type, name)."""

    type: BundleEntryType
    name: str
    installed: bool = False

    @property
    def id(self) -> str:
        return f"{self.type.value}:{self.name}"


@dataclass(frozen=True)
class Bundle:
    """A loaded Brewfile and its entries."""

    path: str
    display_name: str
    entries: tuple[BundleEntry, ...] = ()

    @property
    def installed_count(self) -> int:
        return sum(1 for e in self.entries if e.type.is_checkable and e.installed)

    @property
    def missing_count(self) -> int:
        return sum(1 for e in self.entries if e.type.is_checkable and not e.installed)

    @property
    def checkable_count(self) -> int:
        return sum(1 for e in self.entries if e.type.is_checkable)

    @property
    def missing_entries(self) -> list[BundleEntry]:
        return [e for e in self.entries if e.type.is_checkable and not e.installed]


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class InventorySnapshot:
    """One merged, immutable view of the brew inventory.

    A refresh builds a new snapshot; consumers holding an older one keep a
    complete, consistent view.
    """

    formulae: tuple[Formula, ...] = ()
    casks: tuple[Cask, ...] = ()
    outdated_formulae: tuple[Formula, ...] = ()
    outdated_casks: tuple[Cask, ...] = ()
    services: tuple[Service, ...] = ()
    config: Mapping[str, str] = field(default_factory=dict)
    redundant: tuple[RedundantPackage, ...] = ()
    tool_paths: Mapping[str, str] = field(default_factory=dict)
    reverse_dependencies: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", _freeze(self.config))
        object.__setattr__(self, "tool_paths", _freeze(self.tool_paths))
        object.__setattr__(self, "reverse_dependencies", _freeze(self.reverse_dependencies))

    @property
    def formula_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.formulae)

    @property
    def cask_tokens(self) -> frozenset[str]:
        return frozenset(c.token for c in self.casks)

    @property
    def taps(self) -> list[str]:
        """Sorted union of the taps installed packages come from."""
        taps = {f.tap for f in self.formulae if f.tap}
        taps.update(c.tap for c in self.casks if c.tap)
        return sorted(taps)

    @property
    def outdated_count(self) -> int:
        return len(self.outdated_formulae) + len(self.outdated_casks)

    def formula(self, name: str) -> Optional[Formula]:
        return next((f for f in self.formulae if f.name == name), None)

    def cask(self, token: str) -> Optional[Cask]:
        return next((c for c in self.casks if c.token == token), None)

    def service(self, name: str) -> Optional[Service]:
        return next((s for s in self.services if s.name == name), None)

    def dependents_of(self, name: str) -> list[str]:
        return sorted(self.reverse_dependencies.get(name, ()))


@dataclass(frozen=True)
class UninstallConfirmation:
    """Pending removal that other installed formulae depend on."""

    packages: tuple[str, ...]
    dependents: tuple[str, ...]


@dataclass(frozen=True)
class CleanupPreview:
    file_count: int
    details: str


@dataclass(frozen=True)
class SearchResults:
    formulae: tuple[str, ...] = ()
    casks: tuple[str, ...] = ()


@dataclass(frozen=True)
class ServiceLog:
    name: str
    content: str


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one mutating brew command."""

    description: str
    output: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
