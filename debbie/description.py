"""
Reading dependencies out of R DESCRIPTION files.

DESCRIPTION uses the same Debian control (DCF) syntax as a Packages stanza,
so python-debian's deb822 parser reads it for us. What we have to handle is
the R flavour of a dependency list:

    Depends: R (>= 3.0.2), methods
    Imports: Rcpp (>= 0.12.0),
        stats

Version constraints are kept on the DependencySpec but nothing acts on them
yet: the Debian archive only ever has one version per release anyway.
"""

import os
import re
from typing import Iterable, List, Optional, Sequence

from debian import deb822

from debbie.constants import RUNTIME_DEPENDENCY_FIELDS, RUNTIME_NAME
from debbie.errors import DebbieError


_DEP_RE = re.compile(r'^([A-Za-z][A-Za-z0-9.]*)\s*(?:\(\s*([^)]*?)\s*\))?$')


class DependencySpec:
    __slots__ = ("name", "constraint")

    def __init__(self, name: str, constraint: Optional[str] = None):
        self.name = name
        self.constraint = constraint

    def __eq__(self, other):
        if not isinstance(other, DependencySpec):
            return NotImplemented
        return (self.name, self.constraint) == (other.name, other.constraint)

    def __hash__(self):
        return hash((self.name, self.constraint))

    def __repr__(self):
        if self.constraint:
            return f"DependencySpec({self.name!r}, {self.constraint!r})"
        return f"DependencySpec({self.name!r})"


def parse_dependency(atom: str) -> Optional[DependencySpec]:
    """
    "Rcpp (>= 0.12.0)" -> DependencySpec("Rcpp", ">= 0.12.0")

    Returns None for the R runtime itself. Raises on anything that does
    not look like an R package name, rather than guessing.
    """
    work = " ".join(atom.split())
    m = _DEP_RE.match(work)
    if not m:
        raise DebbieError(f"Cannot parse dependency {atom!r}: expected 'name' or 'name (op version)'")
    name, constraint = m.group(1), m.group(2) or None
    if name == RUNTIME_NAME:
        return None
    return DependencySpec(name, constraint)


def filter_dependencies(atoms: Iterable[str]) -> List[DependencySpec]:
    """Parse a list of raw dependency strings, dropping R and duplicates (first one wins)."""
    result: List[DependencySpec] = []
    seen = set()
    for atom in atoms:
        if not atom.strip():
            continue
        spec = parse_dependency(atom)
        if spec is None or spec.name in seen:
            continue
        seen.add(spec.name)
        result.append(spec)
    return result


def parse_dependency_field(value: str) -> List[DependencySpec]:
    if not value:
        return []
    return filter_dependencies(value.split(","))


def read_description(package_dir: str) -> deb822.Deb822:
    path = os.path.join(package_dir, "DESCRIPTION")
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return deb822.Deb822(f)
    except FileNotFoundError as e:
        raise DebbieError(f"No DESCRIPTION file in package tree {package_dir!r}") from e


def read_dependencies(
    package_dir: str,
    fields: Sequence[str] = RUNTIME_DEPENDENCY_FIELDS,
) -> List[DependencySpec]:
    """Declared dependencies of the package installed at `package_dir`."""
    description = read_description(package_dir)
    atoms: List[str] = []
    for field in fields:
        value = description.get(field, "")
        if value:
            atoms.extend(value.split(","))
    return filter_dependencies(atoms)
