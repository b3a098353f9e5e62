from __future__ import annotations

import io
import os
import tarfile
from pathlib import Path

import pytest
import requests

from debbie.constants import BASE_PACKAGES, SITE_LIBRARY

MIRROR = "http://mirror.test/debian/pool/main/r"
API = "http://sources.test/api/src"
CRAN = "http://cran.test"


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data=None, content: bytes = b"", text: str = ""):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.text = text or content.decode("utf-8", errors="replace")

    def json(self):
        if self._json is None:
            raise ValueError("no JSON")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size: int = 1024):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Answers GET from a url -> response table, 404 for anything else."""

    def __init__(self, routes: dict | None = None, head_status: int = 200, head_error: Exception | None = None):
        self.routes = dict(routes or {})
        self.head_status = head_status
        self.head_error = head_error
        self.gets: list[str] = []
        self.heads: list[str] = []

    def get(self, url, **kwargs):
        self.gets.append(url)
        answer = self.routes.get(url)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            return FakeResponse(404, text="Not Found")
        return answer

    def head(self, url, **kwargs):
        self.heads.append(url)
        if self.head_error is not None:
            raise self.head_error
        return FakeResponse(self.head_status)


class FakeBackend:
    """Stands in for R: remembers what was installed, and in which order."""

    def __init__(self, installed=None, fail_on=()):
        self.installed = set(BASE_PACKAGES) | set(installed or ())
        self.fail_on = set(fail_on)
        self.calls: list[tuple] = []

    def installed_packages(self):
        return set(self.installed)

    def install_tree(self, package, path, options=None):
        from debbie.errors import InstallFailed

        self.calls.append(("tree", package, os.path.basename(path), list(options or [])))
        if package in self.fail_on:
            raise InstallFailed(package, 1)
        self.installed.add(os.path.basename(path))

    def install_source(self, packages, label=None):
        from debbie.errors import InstallFailed

        self.calls.append(("source", list(packages)))
        for name in packages:
            if name in self.fail_on:
                raise InstallFailed(label or name, 1)
        self.installed.update(packages)


def lookup_payload(package: str, *records: tuple) -> dict:
    return {
        "package": f"r-cran-{package.lower()}",
        "versions": [{"area": "main", "suites": list(suites), "version": version} for suites, version in records],
    }


def _ar_member(name: str, data: bytes) -> bytes:
    header = b"%-16s%-12d%-6d%-6d%-8s%-10d`\n" % (name.encode(), 0, 0, 0, b"100644", len(data))
    if len(data) % 2:
        data += b"\n"
    return header + data


def _tar_gz(files: dict) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def build_deb(package_dir: str | None, description: str = "", data_files: dict | None = None,
              with_data: bool = True) -> bytes:
    """
    A minimal but real .deb: debian-binary, control.tar.gz and data.tar.gz,
    with the R package tree under usr/lib/R/site-library/<package_dir>/.
    """
    files = dict(data_files or {})
    if package_dir is not None:
        files[f"./{SITE_LIBRARY}/{package_dir}/DESCRIPTION"] = description.encode()
    control = _tar_gz({"./control": f"Package: r-cran-{(package_dir or 'x').lower()}\n".encode()})
    archive = b"!<arch>\n" + _ar_member("debian-binary", b"2.0\n") + _ar_member("control.tar.gz", control)
    if with_data:
        archive += _ar_member("data.tar.gz", _tar_gz(files))
    return archive


def description_text(package: str, depends: str = "", imports: str = "") -> str:
    lines = [f"Package: {package}", "Version: 1.0"]
    if depends:
        lines.append(f"Depends: {depends}")
    if imports:
        lines.append(f"Imports: {imports}")
    return "\n".join(lines) + "\n"


class FakeArchive:
    """
    Builds the routes of a FakeSession for a small Debian archive.

    add("Rcpp", "1.0.3-1", depends="R (>= 3.0.0)") publishes r-cran-rcpp in
    the sources API and its amd64 .deb on the mirror.
    """

    def __init__(self, release: str = "sid"):
        self.release = release
        self.routes: dict = {}

    def add(self, package: str, version: str, depends: str = "", imports: str = "",
            arch: str = "amd64", suites=None, tree_name: str | None = None):
        name = package.lower()
        self.routes[f"{API}/r-cran-{name}/"] = FakeResponse(
            200, json_data=lookup_payload(package, (suites or [self.release], version)),
        )
        deb = build_deb(tree_name or package, description_text(package, depends, imports))
        url = f"{MIRROR}/r-cran-{name}/r-cran-{name}_{version}_{arch}.deb"
        self.routes[url] = FakeResponse(200, content=deb)
        return url

    def missing(self, package: str):
        self.routes[f"{API}/r-cran-{package.lower()}/"] = FakeResponse(404, json_data={"error": 404})

    def session(self, **kwargs) -> FakeSession:
        return FakeSession(self.routes, **kwargs)


def packages_index(*stanzas: dict) -> str:
    return "\n".join("".join(f"{k}: {v}\n" for k, v in stanza.items()) for stanza in stanzas)


@pytest.fixture
def archive() -> FakeArchive:
    return FakeArchive()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def deb_file(tmp_path: Path):
    def _make(name: str = "r-cran-rcpp_1.0.3-1_amd64.deb", **kwargs) -> str:
        path = tmp_path / name
        path.write_bytes(build_deb(**kwargs))
        return str(path)
    return _make
