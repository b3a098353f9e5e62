from typing import List, Optional


class DebbieError(RuntimeError):
    """
    Base class for everything that aborts an install branch.

    Every error is terminal for the package being installed: nothing here
    is retried, and a failure while installing a dependency aborts the
    package that needed it.
    """


class MirrorUnreachable(DebbieError):
    def __init__(self, mirror_url: str, reason: str = ""):
        self.mirror_url = mirror_url
        msg = f"Debian mirror {mirror_url!r} is not reachable"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFound(DebbieError):
    """The sources API has no r-cran-* source package for this name."""

    def __init__(self, package: str, status: Optional[int] = None, url: str = ""):
        self.package = package
        self.status = status
        self.url = url
        msg = f"Package '{package}' was not found in the Debian archive (status {status})"
        if url:
            msg += f" when querying {url}"
        super().__init__(msg)


class ReleaseUnavailable(DebbieError):
    def __init__(self, package: str, release: str, known_suites: Optional[List[str]] = None):
        self.package = package
        self.release = release
        self.known_suites = known_suites or []
        msg = f"Package '{package}' is not available for release '{release}'."
        if self.known_suites:
            msg += f" Releases that carry it: {', '.join(self.known_suites)}"
        super().__init__(msg)


class VersionMismatch(DebbieError):
    def __init__(self, package: str, release: str, requested: str, available: List[str]):
        self.package = package
        self.release = release
        self.requested = requested
        self.available = available
        super().__init__(
            f"Version '{requested}' of package '{package}' is not available for "
            f"release '{release}'. Available there: {', '.join(available) or 'none'}"
        )


class PackageUnretrievable(DebbieError):
    def __init__(self, package: str, urls: List[str]):
        self.package = package
        self.urls = urls
        super().__init__(
            f"Could not retrieve a binary archive for '{package}'. Tried:\n"
            + "\n".join(f"  {u}" for u in urls)
        )


class MalformedArchive(DebbieError):
    def __init__(self, archive: str, reason: str):
        self.archive = archive
        super().__init__(f"Malformed Debian archive {archive!r}: {reason}")


class AmbiguousOrMissingPackagePath(DebbieError):
    def __init__(self, package: str, search_dir: str, matches: List[str]):
        self.package = package
        self.search_dir = search_dir
        self.matches = matches
        if matches:
            detail = f"several directories match: {', '.join(matches)}"
        else:
            detail = "no directory matches"
        super().__init__(
            f"Cannot locate the unpacked tree of '{package}' in {search_dir!r}: {detail}"
        )


class DependencyExpansionFailed(DebbieError):
    def __init__(self, names: List[str], reason: str):
        self.names = names
        super().__init__(
            f"Could not expand the dependency graph of {', '.join(names)}: {reason}"
        )


class InstallFailed(DebbieError):
    def __init__(self, package: str, status: int, output: str = ""):
        self.package = package
        self.status = status
        self.output = output
        msg = f"Installing '{package}' failed with exit status {status}"
        if output:
            msg += "\nInstaller output:\n" + output.rstrip()
        super().__init__(msg)
