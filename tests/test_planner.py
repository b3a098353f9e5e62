from __future__ import annotations

import pytest

from debbie.description import DependencySpec
from debbie.errors import DebbieError, DependencyExpansionFailed
from debbie.planner import DependencyPlan, plan


class _Hit:
    found = True


class _Miss:
    found = False
    status = 404


class StubResolver:
    def __init__(self, binaries, broken=()):
        self.binaries = set(binaries)
        self.broken = set(broken)
        self.asked = []

    def resolve(self, name):
        self.asked.append(name)
        if name in self.broken:
            raise DebbieError(f"lookup of {name} failed")
        return _Hit() if name in self.binaries else _Miss()


class StubGraph:
    def __init__(self, edges):
        self.edges = edges
        self.calls = []

    def expand(self, names):
        self.calls.append(list(names))
        closure = []

        def visit(name):
            if name in closure:
                return
            for dep in self.edges.get(name, []):
                visit(dep)
            closure.append(name)

        for name in names:
            visit(name)
        return closure


class FailingGraph:
    def expand(self, names):
        raise DependencyExpansionFailed(list(names), "index unavailable")


EDGES = {
    "dplyr": ["glue", "tibble", "Rcpp"],
    "tibble": ["pillar", "rlang"],
    "pillar": ["rlang", "cli"],
}


def test_everything_installed_means_empty_plan() -> None:
    graph = StubGraph(EDGES)
    result = plan([DependencySpec("glue"), "Rcpp"], {"glue", "Rcpp"}, StubResolver([]), graph)
    assert result == DependencyPlan()
    assert not result
    assert graph.calls == []


def test_binaries_before_sources_in_closure_order() -> None:
    resolver = StubResolver(["glue", "rlang", "tibble", "Rcpp"])
    result = plan([DependencySpec("dplyr")], set(), resolver, StubGraph(EDGES))
    assert result.binary_available == ["glue", "rlang", "tibble", "Rcpp"]
    assert result.source_only == ["cli", "pillar", "dplyr"]
    assert list(result) == result.binary_available + result.source_only


def test_installed_names_never_planned() -> None:
    installed = {"rlang", "glue"}
    result = plan(["dplyr"], installed, StubResolver(["tibble"]), StubGraph(EDGES))
    assert not installed & set(result)
    assert "cli" in result.source_only


def test_planning_is_idempotent() -> None:
    deps = [DependencySpec("dplyr"), DependencySpec("tibble", ">= 3.0")]
    first = plan(deps, {"cli"}, StubResolver(["glue", "pillar"]), StubGraph(EDGES))
    second = plan(deps, {"cli"}, StubResolver(["glue", "pillar"]), StubGraph(EDGES))
    assert first == second


def test_closure_is_deduplicated() -> None:
    result = plan(["tibble", "pillar", "tibble"], set(), StubResolver([]), StubGraph(EDGES))
    assert len(list(result)) == len(set(result))


def test_lookup_errors_propagate() -> None:
    with pytest.raises(DebbieError, match="lookup of pillar"):
        plan(["tibble"], set(), StubResolver(["tibble"], broken=["pillar"]), StubGraph(EDGES))


def test_expansion_failure_propagates() -> None:
    with pytest.raises(DependencyExpansionFailed):
        plan(["tibble"], set(), StubResolver([]), FailingGraph())
