"""
The R side of an install.

Everything that actually changes the host goes through here:
    - R CMD INSTALL for a binary tree we unpacked from a .deb
    - Rscript -e 'install.packages(...)' for anything built from source
    - installed.packages() to learn what is already there
"""

import json
import subprocess
from typing import List, Optional, Sequence, Set

from debbie.constants import DEFAULT_CRAN_URL, DEFAULT_INSTALL_OPTS
from debbie.errors import DebbieError, InstallFailed


def _r_string(value: str) -> str:
    # A JSON string literal is also a valid R string literal.
    return json.dumps(value)


def _r_vector(values: Sequence[str]) -> str:
    return "c(" + ", ".join(_r_string(v) for v in values) + ")"


class RBackend:
    def __init__(
        self,
        library: Optional[str] = None,
        repos: str = DEFAULT_CRAN_URL,
        prefer_binary: bool = True,
        quiet: bool = False,
        r_command: str = "R",
        rscript_command: str = "Rscript",
    ):
        self.library = library
        self.repos = repos
        self.prefer_binary = prefer_binary
        self.quiet = quiet
        self.r_command = r_command
        self.rscript_command = rscript_command

    ##########################################################################
    # Commands
    ##########################################################################

    def _prelude(self) -> str:
        """R code run before every expression: library path and repository options."""
        parts = []
        if self.library:
            parts.append(f".libPaths(c({_r_string(self.library)}, .libPaths()))")
        opts = [f"repos = c(CRAN = {_r_string(self.repos)})"]
        if self.prefer_binary:
            # Don't replace a repository binary by a newer source that would need compiling.
            opts.append('install.packages.check.source = "no"')
        parts.append(f"options({', '.join(opts)})")
        return "; ".join(parts)

    def installed_command(self) -> List[str]:
        expr = self._prelude() + '; cat(rownames(installed.packages()), sep = "\\n")'
        return [self.rscript_command, "-e", expr]

    def tree_install_command(self, path: str, options: Sequence[str]) -> List[str]:
        cmd = [self.r_command, "CMD", "INSTALL"]
        if self.library:
            cmd.append(f"--library={self.library}")
        cmd.extend(options)
        cmd.append(path)
        return cmd

    def source_install_command(self, packages: Sequence[str]) -> List[str]:
        # install.packages() only warns when a package fails to build,
        # so check afterwards and turn that into an exit status.
        pkgs = _r_vector(packages)
        lib = f", lib = {_r_string(self.library)}" if self.library else ""
        expr = (
            f"{self._prelude()}; "
            f"pkgs <- {pkgs}; "
            f"install.packages(pkgs{lib}); "
            f"missing <- setdiff(pkgs, rownames(installed.packages())); "
            f"if (length(missing) > 0) {{ message(\"not installed: \", paste(missing, collapse = \", \")); quit(status = 1) }}"
        )
        return [self.rscript_command, "-e", expr]

    def _run(self, cmd: List[str], package: str) -> subprocess.CompletedProcess:
        try:
            if self.quiet:
                result = subprocess.run(cmd, capture_output=True, text=True)
            else:
                result = subprocess.run(cmd, text=True)
        except OSError as e:
            raise InstallFailed(package, 127, f"cannot run {cmd[0]!r}: {e}") from e
        if result.returncode != 0:
            output = ""
            if self.quiet:
                output = (result.stdout or "") + (result.stderr or "")
            raise InstallFailed(package, result.returncode, output)
        return result

    ##########################################################################
    # Operations
    ##########################################################################

    def installed_packages(self) -> Set[str]:
        cmd = self.installed_command()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise DebbieError(f"Cannot list installed R packages, failed to run {cmd[0]!r}: {e}") from e
        if result.returncode != 0:
            raise DebbieError(
                f"Cannot list installed R packages (exit status {result.returncode}):\n{result.stderr}"
            )
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def install_tree(self, package: str, path: str, options: Optional[Sequence[str]] = None):
        """Install an already-built package tree, e.g. one unpacked from a .deb."""
        if options is None:
            options = DEFAULT_INSTALL_OPTS
        self._run(self.tree_install_command(path, options), package)

    def install_source(self, packages: Sequence[str], label: Optional[str] = None):
        """
        Install `packages` from CRAN sources in one install.packages() call,
        which also pulls in whatever they need.
        """
        if not packages:
            return
        self._run(self.source_install_command(packages), label or ", ".join(packages))
