"""Reverse-dependency index over installed formulae."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from brewbar.core.models import Formula

ReverseIndex = Mapping[str, Sequence[str]]


def reverse_dependencies(
    formulae: Iterable[Formula], include_build: bool = False
) -> dict[str, tuple[str, ...]]:
    """Map each dependency name to the formulae that declare it.

    Direct edges only; the index is not transitively closed. Dependents
    appear in the order the formulae are given. Dependency names need not
    be installed themselves.

    Args:
        formulae: Installed formulae.
        include_build: Also count build-only dependencies as edges.

    Returns:
        A dictionary of dependency name to dependent formula names.
    """
    index: dict[str, list[str]] = {}

    for formula in formulae:
        deps = list(formula.dependencies)
        if include_build:
            deps.extend(d for d in formula.build_dependencies if d not in deps)
        for dep in deps:
            dependents = index.setdefault(dep, [])
            if formula.name not in dependents:
                dependents.append(formula.name)

    return {name: tuple(dependents) for name, dependents in index.items()}


def uninstall_risk(index: ReverseIndex, candidates: Iterable[str]) -> list[str]:
    """Installed formulae that still need one of ``candidates``.

    Dependents that are themselves being removed do not count.

    Returns:
        Sorted names; empty when the removal is safe.
    """
    removing = set(candidates)
    at_risk: set[str] = set()

    for name in removing:
        at_risk.update(index.get(name, ()))

    return sorted(at_risk - removing)


def leaves(formulae: Iterable[Formula], index: ReverseIndex) -> list[Formula]:
    """Formulae installed on request that nothing else depends on."""
    return [
        f for f in formulae
        if f.installed_on_request and not index.get(f.name)
    ]


def orphans(formulae: Iterable[Formula], index: ReverseIndex) -> list[Formula]:
    """Formulae pulled in as dependencies that nothing depends on any more.

    A formula whose request state is unknown counts as requested, so it is
    never offered for removal here.
    """
    return [
        f for f in formulae
        if not f.installed_on_request and not index.get(f.name)
    ]
