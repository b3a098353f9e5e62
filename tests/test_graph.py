from __future__ import annotations

import pytest

from conftest import CRAN, FakeResponse, FakeSession, packages_index
from debbie.errors import DependencyExpansionFailed
from debbie.graph import CranDependencyGraph, parse_packages_index

INDEX = packages_index(
    {"Package": "dplyr", "Version": "1.0.0", "Depends": "R (>= 3.2.0)",
     "Imports": "glue (>= 1.3.2), magrittr, methods, tibble", "LinkingTo": "Rcpp",
     "Suggests": "testthat"},
    {"Package": "tibble", "Version": "3.0.0", "Imports": "magrittr, pillar"},
    {"Package": "pillar", "Version": "1.4.0", "Imports": "utils, tibble"},
    {"Package": "glue", "Version": "1.4.0", "Imports": "methods"},
    {"Package": "magrittr", "Version": "1.5"},
    {"Package": "Rcpp", "Version": "1.0.4"},
    {"Package": "testthat", "Version": "2.3.0", "Imports": "magrittr"},
)


def test_parse_index_keeps_strong_edges_only() -> None:
    graph = parse_packages_index(INDEX)
    assert graph["dplyr"] == ["glue", "magrittr", "tibble", "Rcpp"]
    assert graph["glue"] == []
    assert graph["pillar"] == ["tibble"]


def test_expand_orders_dependencies_first() -> None:
    graph = CranDependencyGraph(index=parse_packages_index(INDEX), quiet=True)
    closure = graph.expand(["dplyr"])
    assert sorted(closure) == sorted(["dplyr", "glue", "magrittr", "tibble", "pillar", "Rcpp"])
    assert closure[-1] == "dplyr"
    assert closure.index("magrittr") < closure.index("tibble")
    assert "testthat" not in closure


def test_expand_survives_cycles_and_duplicates() -> None:
    graph = CranDependencyGraph(index=parse_packages_index(INDEX), quiet=True)
    closure = graph.expand(["tibble", "pillar", "tibble"])
    assert sorted(closure) == ["magrittr", "pillar", "tibble"]
    assert len(closure) == len(set(closure))


def test_expand_skips_base_packages_and_keeps_unknown() -> None:
    graph = CranDependencyGraph(index=parse_packages_index(INDEX), quiet=True)
    assert graph.expand(["methods", "BiocGenerics"]) == ["BiocGenerics"]


def test_index_downloaded_once() -> None:
    session = FakeSession({f"{CRAN}/src/contrib/PACKAGES": FakeResponse(200, text=INDEX)})
    graph = CranDependencyGraph(CRAN, session=session, quiet=True)
    graph.expand(["glue"])
    graph.expand(["magrittr"])
    assert session.gets == [f"{CRAN}/src/contrib/PACKAGES"]


def test_index_failure_is_expansion_failure() -> None:
    graph = CranDependencyGraph(CRAN, session=FakeSession(), quiet=True)
    with pytest.raises(DependencyExpansionFailed, match="glue"):
        graph.expand(["glue"])
