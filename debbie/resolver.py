"""
Metadata lookup against the sources.debian.org API.

The API answers GET {api}/r-cran-<name>/ with either

    {"error": 404}

or

    {"package": "r-cran-data.table",
     "versions": [{"area": "main", "suites": ["bullseye", "sid"], "version": "1.12.6+dfsg-1"}, ...]}

Both are turned into Found or Missing here, callers never see the raw JSON.
"""

from typing import List, Optional

import requests
from debian.debian_support import Version

from debbie.constants import (
    DEFAULT_MIRROR_URL,
    DEFAULT_SOURCES_API_URL,
    PACKAGE_PREFIX,
    REQUEST_TIMEOUT,
)
from debbie.errors import (
    DebbieError,
    MirrorUnreachable,
    NotFound,
    ReleaseUnavailable,
    VersionMismatch,
)


##############################################################################
# Names
##############################################################################

def normalize_name(package: str) -> str:
    """
    "r-cran-Data.Table" -> "data.table", "Rcpp" -> "rcpp".

    Debian source package names are always lowercase, R package names are not,
    so the lookup key is the lowercased name without the r-cran- prefix.
    """
    name = package.strip()
    if name.lower().startswith(PACKAGE_PREFIX):
        name = name[len(PACKAGE_PREFIX):]
    return name.lower()


def debian_name(package: str) -> str:
    return PACKAGE_PREFIX + normalize_name(package)


##############################################################################
# Lookup results
##############################################################################

class VersionRecord:
    """One entry of the "versions" list: a version and the releases carrying it."""
    __slots__ = ("area", "suites", "version")

    def __init__(self, area: str, suites: List[str], version: str):
        self.area = area
        self.suites = list(suites or [])
        self.version = version

    def __repr__(self):
        return f"VersionRecord({self.area!r}, {self.suites!r}, {self.version!r})"


class LookupResult:
    found = False


class Found(LookupResult):
    found = True

    def __init__(self, package: str, versions: List[VersionRecord]):
        self.package = package
        self.versions = versions


class Missing(LookupResult):
    def __init__(self, package: str, status: Optional[int]):
        self.package = package
        self.status = status


def parse_lookup_payload(package: str, payload: dict, url: Optional[str] = None) -> LookupResult:
    if "error" in payload:
        status = payload["error"]
        try:
            status = int(status)
        except (TypeError, ValueError):
            pass
        return Missing(package, status)

    versions = []
    for entry in payload.get("versions", []):
        if not isinstance(entry, dict) or "version" not in entry:
            raise DebbieError(
                f"Metadata lookup for '{package}' at {url or 'the sources API'} returned "
                f"a version record without a version: {entry!r}"
            )
        versions.append(VersionRecord(
            area=entry.get("area", ""),
            suites=entry.get("suites", []),
            version=entry["version"],
        ))
    return Found(package, versions)


##############################################################################
# Resolver
##############################################################################

class MetadataResolver:
    """
    Asks the sources API whether an r-cran-* package exists.

    The mirror reachability check is done once per resolver, not once per
    lookup, since the planner asks about every package of a dependency
    closure in a row.
    """

    def __init__(
        self,
        mirror_url: str = DEFAULT_MIRROR_URL,
        sources_api_url: str = DEFAULT_SOURCES_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.mirror_url = mirror_url.rstrip("/")
        self.sources_api_url = sources_api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self._mirror_checked = False

    def check_mirror(self):
        if self._mirror_checked:
            return
        try:
            response = self.session.head(self.mirror_url + "/", timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise MirrorUnreachable(self.mirror_url, str(e)) from e
        if response.status_code >= 400:
            raise MirrorUnreachable(self.mirror_url, f"HTTP status {response.status_code}")
        self._mirror_checked = True

    def lookup_url(self, package: str) -> str:
        return f"{self.sources_api_url}/{debian_name(package)}/"

    def lookup(self, package: str) -> LookupResult:
        """
        Query the sources API without touching the mirror.

        A "not found" answer comes back as Missing. Anything else that goes wrong
        (connection errors, server errors, garbage instead of JSON) raises,
        because we can't tell whether the package exists or not.
        """
        url = self.lookup_url(package)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise DebbieError(f"Metadata lookup for '{package}' failed at {url}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and ("error" in payload or "versions" in payload):
            return parse_lookup_payload(package, payload, url)
        if response.status_code == 404:
            return Missing(package, 404)
        raise DebbieError(
            f"Metadata lookup for '{package}' at {url} returned an unexpected answer "
            f"(HTTP status {response.status_code})."
        )

    def resolve(self, package: str) -> LookupResult:
        self.check_mirror()
        return self.lookup(package)

    def require(self, package: str) -> Found:
        """Like resolve(), but a miss raises NotFound."""
        result = self.resolve(package)
        if not result.found:
            raise NotFound(package, result.status, self.lookup_url(package))
        return result


def resolve(
    package: str,
    mirror_url: str = DEFAULT_MIRROR_URL,
    sources_api_url: str = DEFAULT_SOURCES_API_URL,
    session: Optional[requests.Session] = None,
) -> LookupResult:
    return MetadataResolver(mirror_url, sources_api_url, session=session).resolve(package)


##############################################################################
# Version selection
##############################################################################

def select_version(
    package: str,
    versions: List[VersionRecord],
    release: str,
    version: Optional[str] = None,
) -> str:
    """
    Pick the version of `package` to install for `release`.

    - The release must appear in the suites of at least one record,
      otherwise ReleaseUnavailable.
    - With an explicit `version`, it must be one of the versions recorded for
      that release (compared with Debian version semantics, so "0:1.0-1" and
      "1.0-1" are the same), otherwise VersionMismatch. The requested string
      is returned as given.
    - Without one, the first record (in API order) that lists the release wins.
    """
    in_release = [rec for rec in versions if release in rec.suites]
    if not in_release:
        known = []
        for rec in versions:
            for suite in rec.suites:
                if suite not in known:
                    known.append(suite)
        raise ReleaseUnavailable(package, release, known)

    if version is None:
        return in_release[0].version

    available = [rec.version for rec in in_release]
    try:
        wanted = Version(version)
    except ValueError:
        # not a Debian version string, so it can't be one of the recorded ones
        raise VersionMismatch(package, release, version, available)
    for rec in in_release:
        if Version(rec.version) == wanted:
            return version

    raise VersionMismatch(package, release, version, available)
