"""
Install orchestration: one package, its dependencies, then the package itself.

For a package found in the Debian archive the steps are

    RESOLVING_METADATA    ask the sources API which versions exist
    SELECTING_VERSION     pick the version for the requested release
    FETCHING              download r-cran-<name>_<version>_<arch|all>.deb
    UNPACKING             extract the data member
    LOCATING_TREE         find <Package>/ among the unpacked directories
    READING_DEPENDENCIES  Depends + Imports of its DESCRIPTION
    PLANNING              closure of those, split binary / source
    INSTALLING_DEPENDENCIES
    INSTALLING_TARGET     R CMD INSTALL on the unpacked tree
    DONE

and any error moves to FAILED and propagates. A package the archive doesn't
have goes straight to INSTALLING_TARGET via install.packages() when source
fallback is enabled.

Recursion is bounded: install_package() plans the whole closure
and installs every entry through install_dependency(), which never plans on
its own. It hands whatever of its direct dependencies is still missing to
install.packages() in one go instead.
"""

import os
import re
import shutil
import tempfile
from enum import Enum
from typing import List, Optional, Sequence, Set

import requests

from debbie.backend import RBackend
from debbie.constants import (
    BASE_PACKAGES,
    DEFAULT_ARCH,
    DEFAULT_CRAN_URL,
    DEFAULT_INSTALL_OPTS,
    DEFAULT_MIRROR_URL,
    DEFAULT_RELEASE,
    DEFAULT_SOURCES_API_URL,
    PACKAGE_PREFIX,
    REQUEST_TIMEOUT,
)
from debbie.description import DependencySpec, read_dependencies
from debbie.errors import DebbieError, DependencyExpansionFailed, NotFound, PackageUnretrievable
from debbie.fetch import fetch_package, retrieve_package
from debbie.graph import CranDependencyGraph
from debbie.planner import DependencyPlan, plan
from debbie.resolver import MetadataResolver, debian_name, select_version
from debbie.unpack import locate_package_tree, unpack_package


class InstallState(Enum):
    RESOLVING_METADATA = "resolving metadata"
    SELECTING_VERSION = "selecting version"
    FETCHING = "fetching"
    UNPACKING = "unpacking"
    LOCATING_TREE = "locating tree"
    READING_DEPENDENCIES = "reading dependencies"
    PLANNING = "planning"
    INSTALLING_DEPENDENCIES = "installing dependencies"
    INSTALLING_TARGET = "installing target"
    DONE = "done"
    FAILED = "failed"


class InstallOptions:
    """Everything one install run can be told, with the command line defaults."""
    __slots__ = (
        "release", "mirror_url", "sources_api_url", "repos", "arch",
        "install_opts", "recursive", "prefer_binary", "source_fallback",
        "clean", "quiet", "workdir", "keep_workdir", "library", "timeout",
    )

    def __init__(
        self,
        release: str = DEFAULT_RELEASE,
        mirror_url: str = DEFAULT_MIRROR_URL,
        sources_api_url: str = DEFAULT_SOURCES_API_URL,
        repos: str = DEFAULT_CRAN_URL,
        arch: str = DEFAULT_ARCH,
        install_opts: Optional[Sequence[str]] = None,
        recursive: bool = True,
        prefer_binary: bool = True,
        source_fallback: bool = False,
        clean: bool = True,
        quiet: bool = False,
        workdir: Optional[str] = None,
        keep_workdir: bool = False,
        library: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.release = release
        self.mirror_url = mirror_url
        self.sources_api_url = sources_api_url
        self.repos = repos
        self.arch = arch
        self.install_opts = list(DEFAULT_INSTALL_OPTS if install_opts is None else install_opts)
        self.recursive = recursive
        self.prefer_binary = prefer_binary
        self.source_fallback = source_fallback
        self.clean = clean
        self.quiet = quiet
        self.workdir = workdir
        self.keep_workdir = keep_workdir
        self.library = library
        self.timeout = timeout


_URL_NAME_RE = re.compile(r'^' + re.escape(PACKAGE_PREFIX) + r'(.+?)_')


def package_from_url(url: str) -> str:
    """".../r-cran-data.table_1.12.6+dfsg-1_amd64.deb" -> "data.table"."""
    m = _URL_NAME_RE.match(os.path.basename(url))
    if not m:
        raise DebbieError(
            f"Cannot tell the package name from {url!r}: expected a file name "
            f"like '{PACKAGE_PREFIX}<name>_<version>_<arch>.deb'."
        )
    return m.group(1)


class Installer:
    def __init__(
        self,
        options: Optional[InstallOptions] = None,
        resolver: Optional[MetadataResolver] = None,
        graph: Optional[CranDependencyGraph] = None,
        backend: Optional[RBackend] = None,
        session: Optional[requests.Session] = None,
    ):
        self.options = options or InstallOptions()
        opts = self.options
        self.session = session or requests.Session()
        self.resolver = resolver or MetadataResolver(
            opts.mirror_url, opts.sources_api_url, session=self.session, timeout=opts.timeout,
        )
        self.graph = graph or CranDependencyGraph(
            opts.repos, session=self.session, timeout=opts.timeout, quiet=opts.quiet,
        )
        self.backend = backend or RBackend(
            library=opts.library, repos=opts.repos,
            prefer_binary=opts.prefer_binary, quiet=opts.quiet,
        )
        self.state = None
        # Names handled during the current top-level install, so a dependency
        # reached twice (or through a cycle) is installed once.
        self._handled: Set[str] = set()

    def _say(self, msg: str):
        if not self.options.quiet:
            print(msg)

    def _enter(self, state: InstallState):
        self.state = state

    ##########################################################################
    # Entry points
    ##########################################################################

    def install_package(
        self,
        package: str,
        version: Optional[str] = None,
        recursive: Optional[bool] = None,
    ):
        """
        Install `package` (and its dependencies) from the Debian archive.

        `recursive` defaults to the option of the same name. A working
        directory is created for the whole run and removed afterwards,
        unless the options name one or ask to keep it.
        """
        if recursive is None:
            recursive = self.options.recursive
        self._handled = set()
        with self._workdir() as workdir:
            self._install(
                package, version, workdir, recursive=recursive,
                skip_installed=False, allow_source=self.options.source_fallback,
            )

    def install_dependency(self, package: str, workdir: str):
        """
        Install one planned dependency: no planning of its own, skipped if present.

        The plan already put names without a Debian binary on the source list,
        so for those a source install is the plan, not a fallback.
        """
        self._install(package, None, workdir, recursive=False, skip_installed=True, allow_source=True)

    def install_url(self, url: str, recursive: Optional[bool] = None):
        """Install straight from a .deb URL, skipping the metadata lookup."""
        if recursive is None:
            recursive = self.options.recursive
        package = package_from_url(url)
        self._handled = set()
        self._handled.add(package)
        with self._workdir() as workdir:
            try:
                installed = self.backend.installed_packages()
                self._enter(InstallState.FETCHING)
                pkg_dir = os.path.join(workdir, debian_name(package))
                try:
                    archive = retrieve_package(
                        url, pkg_dir, session=self.session,
                        timeout=self.options.timeout, quiet=self.options.quiet,
                    )
                except requests.exceptions.RequestException as e:
                    if not self.options.quiet:
                        print(f"Failed to fetch from {url}: {e}")
                    raise PackageUnretrievable(package, [url]) from e
                self._install_archive(package, archive, pkg_dir, workdir, recursive, installed)
            except Exception:
                self._enter(InstallState.FAILED)
                raise

    ##########################################################################
    # Steps
    ##########################################################################

    def _workdir(self):
        return _ScopedWorkdir(self.options.workdir, self.options.keep_workdir)

    def _install(
        self,
        package: str,
        version: Optional[str],
        workdir: str,
        recursive: bool,
        skip_installed: bool,
        allow_source: bool,
    ):
        if package in self._handled:
            return
        self._handled.add(package)

        try:
            self._enter(InstallState.RESOLVING_METADATA)
            installed = self.backend.installed_packages()
            if skip_installed and package in installed:
                self._say(f"Exists: {package} is already installed.")
                self._enter(InstallState.DONE)
                return

            result = self.resolver.resolve(package)
            if not result.found:
                if not allow_source:
                    raise NotFound(package, result.status, self.resolver.lookup_url(package))
                self._say(f"Info: '{package}' has no Debian binary, installing it from source.")
                self._enter(InstallState.INSTALLING_TARGET)
                self.backend.install_source([package])
                self._enter(InstallState.DONE)
                self._say(f"Info: Finished installing '{package}' from source.")
                return

            self._enter(InstallState.SELECTING_VERSION)
            chosen = select_version(package, result.versions, self.options.release, version)
            self._say(f"Info: Using {debian_name(package)} {chosen} from '{self.options.release}'.")

            self._enter(InstallState.FETCHING)
            pkg_dir = os.path.join(workdir, debian_name(package))
            archive = fetch_package(
                self.options.mirror_url, package, chosen, pkg_dir,
                arch=self.options.arch, session=self.session,
                timeout=self.options.timeout, quiet=self.options.quiet,
            )

            self._install_archive(package, archive, pkg_dir, workdir, recursive, installed)
        except Exception:
            self._enter(InstallState.FAILED)
            raise

    def _install_archive(
        self,
        package: str,
        archive: str,
        pkg_dir: str,
        workdir: str,
        recursive: bool,
        installed: Set[str],
    ):
        self._enter(InstallState.UNPACKING)
        tree_root = unpack_package(archive, os.path.join(pkg_dir, "tree"), clean=self.options.clean)

        self._enter(InstallState.LOCATING_TREE)
        tree = locate_package_tree(package, tree_root)

        self._enter(InstallState.READING_DEPENDENCIES)
        deps = read_dependencies(tree)

        if recursive:
            self._install_planned(package, deps, installed, workdir)
        else:
            self._install_flat(package, deps, installed)

        self._enter(InstallState.INSTALLING_TARGET)
        self.backend.install_tree(package, tree, self.options.install_opts)
        self._enter(InstallState.DONE)
        self._say(f"Info: Finished installing '{package}'.")

    def _install_planned(self, package: str, deps: List[DependencySpec], installed: Set[str], workdir: str):
        self._enter(InstallState.PLANNING)
        try:
            dep_plan = plan(deps, installed, self.resolver, self.graph)
        except DependencyExpansionFailed as e:
            if not self.options.source_fallback:
                raise
            self._say(f"Warning: {e}\nFalling back to a source install of the dependencies of '{package}'.")
            self._install_flat(package, deps, installed)
            return

        self._report_plan(package, dep_plan)
        self._enter(InstallState.INSTALLING_DEPENDENCIES)
        for name in dep_plan:
            self.install_dependency(name, workdir)

    def _install_flat(self, package: str, deps: List[DependencySpec], installed: Set[str]):
        missing = [
            d.name for d in deps
            if d.name not in installed and d.name not in BASE_PACKAGES and d.name not in self._handled
        ]
        if not missing:
            return
        self._enter(InstallState.INSTALLING_DEPENDENCIES)
        self._say(f"Info: Installing dependencies of '{package}' from source: {', '.join(missing)}")
        self.backend.install_source(missing, label=f"dependencies of {package}")

    def _report_plan(self, package: str, dep_plan: DependencyPlan):
        if not dep_plan:
            self._say(f"Info: All dependencies of '{package}' are already installed.")
            return
        if dep_plan.binary_available:
            self._say(f"Info: Binary dependencies of '{package}': {', '.join(dep_plan.binary_available)}")
        if dep_plan.source_only:
            self._say(f"Info: Source dependencies of '{package}': {', '.join(dep_plan.source_only)}")


class _ScopedWorkdir:
    """
    Working directory for one top-level install.

    A temporary directory is removed on exit; a directory the user gave us
    is created if needed and left alone.
    """

    def __init__(self, path: Optional[str], keep: bool):
        self.path = path
        self.keep = keep or path is not None
        self._created: Optional[str] = None

    def __enter__(self) -> str:
        if self.path is not None:
            os.makedirs(self.path, exist_ok=True)
            return self.path
        self._created = tempfile.mkdtemp(prefix="debbie-")
        return self._created

    def __exit__(self, exc_type, exc, tb):
        if self._created and not self.keep:
            shutil.rmtree(self._created, ignore_errors=True)
        return False


def install_deb(
    package: Optional[str] = None,
    url: Optional[str] = None,
    version: Optional[str] = None,
    **kwargs,
):
    """
    Install an R package from the Debian archive, by name or by .deb URL.

    Keyword arguments are InstallOptions fields.
    """
    installer = Installer(InstallOptions(**kwargs))
    if url is not None:
        installer.install_url(url)
    elif package is not None:
        installer.install_package(package, version=version)
    else:
        raise DebbieError("install_deb() needs either a package name or a url.")
    return installer
