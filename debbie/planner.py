from typing import Iterable, Iterator, List, Optional, Set, Union

from debbie.description import DependencySpec


class DependencyPlan:
    """
    What has to be installed before a package, and in which order.

    binary_available: names with an r-cran-* package in the Debian archive.
    source_only:      names that must be built from CRAN sources.

    Binaries always go first. Within each list the order of the dependency closure is kept
    (dependencies before the packages that need them).
    """
    __slots__ = ("binary_available", "source_only")

    def __init__(self, binary_available: Optional[List[str]] = None, source_only: Optional[List[str]] = None):
        self.binary_available = list(binary_available or [])
        self.source_only = list(source_only or [])

    def __iter__(self) -> Iterator[str]:
        yield from self.binary_available
        yield from self.source_only

    def __len__(self):
        return len(self.binary_available) + len(self.source_only)

    def __bool__(self):
        return len(self) > 0

    def __eq__(self, other):
        if not isinstance(other, DependencyPlan):
            return NotImplemented
        return (self.binary_available, self.source_only) == (other.binary_available, other.source_only)

    def __repr__(self):
        return f"DependencyPlan(binary_available={self.binary_available!r}, source_only={self.source_only!r})"


def _dep_name(dep: Union[DependencySpec, str]) -> str:
    return dep.name if isinstance(dep, DependencySpec) else dep


def plan(
    direct_deps: Iterable[Union[DependencySpec, str]],
    installed: Set[str],
    resolver,
    graph,
) -> DependencyPlan:
    """
    Turn the direct dependencies of one package into a DependencyPlan.

    1. drop what is already installed; nothing left means nothing to do
    2. expand the rest to the full closure with `graph.expand()`
       (raises DependencyExpansionFailed)
    3. drop installed names again, the closure brings in new ones
    4. ask `resolver.resolve()` about every name: found -> binary, missing -> source.
       Any other lookup error propagates; an unknown answer is not a "no".

    Same inputs give the same plan: nothing here depends on anything but
    the arguments and the answers of the two collaborators.
    """
    pending: List[str] = []
    for dep in direct_deps:
        name = _dep_name(dep)
        if name not in installed and name not in pending:
            pending.append(name)

    if not pending:
        return DependencyPlan()

    closure: List[str] = []
    seen: Set[str] = set()
    for name in graph.expand(pending):
        if name in installed or name in seen:
            continue
        seen.add(name)
        closure.append(name)

    result = DependencyPlan()
    for name in closure:
        if resolver.resolve(name).found:
            result.binary_available.append(name)
        else:
            result.source_only.append(name)
    return result
