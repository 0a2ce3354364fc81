"""Detect formulae made redundant by higher-level version managers."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from brewbar.analysis.dependencies import ReverseIndex, reverse_dependencies
from brewbar.core.logging import get_logger
from brewbar.core.models import Formula, Pattern, RedundancyRule, RedundantPackage

log = get_logger(__name__)

prefix = Pattern.prefix
exact = Pattern.exact

# Order matters: the first rule that matches a formula claims it.
BUILTIN_RULES: tuple[RedundancyRule, ...] = (
    # Python
    RedundancyRule(
        "uv",
        "UV manages Python, packages & virtual environments",
        (
            prefix("python@"), exact("pip"), exact("pipx"),
            exact("virtualenv"), exact("poetry"), exact("pipenv"),
            exact("setuptools"),
        ),
    ),
    RedundancyRule("pyenv", "pyenv manages Python versions", (prefix("python@"),)),
    # JavaScript / Node
    RedundancyRule(
        "bun",
        "Bun replaces Node.js runtime & package managers",
        (prefix("node@"), exact("node"), exact("pnpm"), exact("yarn"), exact("npm")),
    ),
    RedundancyRule(
        "fnm",
        "fnm manages Node.js versions",
        (prefix("node@"), exact("node"), exact("nvm")),
    ),
    RedundancyRule(
        "volta",
        "Volta manages Node.js & package manager versions",
        (prefix("node@"), exact("node"), exact("pnpm"), exact("yarn"), exact("npm")),
    ),
    RedundancyRule("nvm", "nvm manages Node.js versions", (prefix("node@"), exact("node"))),
    # Ruby
    RedundancyRule("rbenv", "rbenv manages Ruby versions", (prefix("ruby@"),)),
    RedundancyRule("chruby", "chruby manages Ruby versions", (prefix("ruby@"),)),
    # Rust
    RedundancyRule("rustup", "rustup manages Rust toolchains", (exact("rust"),)),
    # Go
    RedundancyRule("goenv", "goenv manages Go versions", (prefix("go@"),)),
    # Java
    RedundancyRule(
        "jenv", "jenv manages Java versions", (prefix("openjdk@"), exact("openjdk"))
    ),
    # Polyglot
    RedundancyRule(
        "mise",
        "mise manages runtime versions (polyglot)",
        (
            prefix("python@"), prefix("node@"), exact("node"),
            prefix("ruby@"), prefix("go@"), prefix("openjdk@"),
            exact("openjdk"),
            exact("pyenv"), exact("rbenv"), exact("nodenv"),
            exact("goenv"), exact("jenv"), exact("fnm"), exact("nvm"),
        ),
    ),
)


def detect_redundancies(
    formulae: Iterable[Formula],
    rules: Sequence[RedundancyRule] = BUILTIN_RULES,
    index: Optional[ReverseIndex] = None,
) -> list[RedundantPackage]:
    """Flag installed formulae that an installed tool manager supersedes.

    Rules are evaluated in table order and only when their tool is
    installed. Formulae are scanned sorted by name; each is claimed by at
    most one rule, and a tool is never flagged by its own rule.

    Args:
        formulae: Installed formulae.
        rules: Ordered rule table.
        index: Reverse-dependency index; built from ``formulae`` if omitted.

    Returns:
        Findings in rule order, then name order.
    """
    ordered = sorted(formulae, key=lambda f: f.name)
    installed = {f.name for f in ordered}
    if index is None:
        index = reverse_dependencies(ordered)

    claimed: set[str] = set()
    findings: list[RedundantPackage] = []

    for rule in rules:
        if rule.tool_name not in installed:
            continue

        for formula in ordered:
            if formula.name == rule.tool_name or formula.name in claimed:
                continue
            if rule.matches(formula.name):
                claimed.add(formula.name)
                findings.append(
                    RedundantPackage(
                        formula=formula,
                        rule=rule,
                        dependents=tuple(index.get(formula.name, ())),
                    )
                )

    log.debug("redundancy_detected", count=len(findings))

    return findings
