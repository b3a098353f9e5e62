"""
Transitive dependency expansion over the CRAN package index.

CRAN publishes src/contrib/PACKAGES, one DCF stanza per package:

    Package: dplyr
    Version: 1.1.4
    Depends: R (>= 3.5.0)
    Imports: cli (>= 3.4.0), generics, glue (>= 1.3.2), lifecycle (>= 1.0.3), ...

We read it once, keep only the strong edges (Depends, Imports, LinkingTo),
and walk the graph from the requested names.
"""

from typing import Dict, Iterable, List, Optional, Set

import requests
from debian import deb822

from debbie.constants import (
    BASE_PACKAGES,
    DEFAULT_CRAN_URL,
    REQUEST_TIMEOUT,
    STRONG_DEPENDENCY_FIELDS,
)
from debbie.description import filter_dependencies
from debbie.errors import DebbieError, DependencyExpansionFailed


def parse_packages_index(text: str) -> Dict[str, List[str]]:
    """
    Build {package: [direct strong dependency names]} from a PACKAGES file.

    Base packages (utils, methods, ...) are dropped from the edge lists because
    they come with R and can't be installed separately.
    """
    graph: Dict[str, List[str]] = {}
    for stanza in deb822.Deb822.iter_paragraphs(text.splitlines(), use_apt_pkg=False):
        name = stanza.get("Package")
        if not name:
            continue
        atoms: List[str] = []
        for field in STRONG_DEPENDENCY_FIELDS:
            value = stanza.get(field, "")
            if value:
                atoms.extend(value.split(","))
        deps = [spec.name for spec in filter_dependencies(atoms) if spec.name not in BASE_PACKAGES]
        # PACKAGES can list one package more than once; the first stanza wins
        graph.setdefault(name, deps)
    return graph


class CranDependencyGraph:
    """
    expand(names) -> the names plus everything they need, dependencies
    before the packages that need them.
    """

    def __init__(
        self,
        repos: str = DEFAULT_CRAN_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        index: Optional[Dict[str, List[str]]] = None,
        quiet: bool = False,
    ):
        self.repos = repos.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.quiet = quiet
        self._index = index

    @property
    def index_url(self) -> str:
        return f"{self.repos}/src/contrib/PACKAGES"

    def load(self) -> Dict[str, List[str]]:
        if self._index is not None:
            return self._index
        url = self.index_url
        if not self.quiet:
            print(f"Downloading: CRAN package index from {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DebbieError(f"Failed to download the CRAN package index {url}: {e}") from e
        self._index = parse_packages_index(response.text)
        if not self.quiet:
            print(f"Indexed {len(self._index)} CRAN packages.")
        return self._index

    def expand(self, names: Iterable[str]) -> List[str]:
        names = list(names)
        try:
            index = self.load()
        except DebbieError as e:
            raise DependencyExpansionFailed(names, str(e)) from e

        closure: List[str] = []
        visited: Set[str] = set()

        for root in names:
            if root in visited or root in BASE_PACKAGES:
                continue
            if root not in index and not self.quiet:
                print(f"Warning: '{root}' is not in the CRAN index, its own dependencies are unknown.")
            # Iterative post-order DFS; (name, expanded) pairs on the stack.
            stack = [(root, False)]
            while stack:
                name, expanded = stack.pop()
                if expanded:
                    closure.append(name)
                    continue
                if name in visited:
                    continue
                visited.add(name)
                stack.append((name, True))
                for dep in reversed(index.get(name, [])):
                    if dep not in visited:
                        stack.append((dep, False))

        return closure
