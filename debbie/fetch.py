import os
from typing import List, Optional

import requests
from debian.debian_support import Version

from debbie.constants import ARCH_INDEPENDENT, DEFAULT_ARCH, REQUEST_TIMEOUT
from debbie.errors import PackageUnretrievable
from debbie.resolver import debian_name


##############################################################################
# URL construction
##############################################################################

def pool_version(version: str) -> str:
    """
    The version as it appears in a pool file name.

    Debian never puts the epoch into .deb file names:
        "1:0.4.33-2" -> "0.4.33-2"
    """
    v = Version(version)
    if v.debian_revision:
        return f"{v.upstream_version}-{v.debian_revision}"
    return v.upstream_version


def build_package_url(mirror_url: str, package: str, version: str, arch: str) -> str:
    name = debian_name(package)
    return f"{mirror_url.rstrip('/')}/{name}/{name}_{pool_version(version)}_{arch}.deb"


def candidate_urls(
    mirror_url: str,
    package: str,
    version: str,
    arch: str = DEFAULT_ARCH,
) -> List[str]:
    """
    Where a binary of `package` can live, in the order we try them.

    Packages with compiled code are published once per architecture
    (r-cran-rcpp_1.0.3-1_amd64.deb); pure R packages only once, as
    Architecture: all (r-cran-magrittr_1.5-5_all.deb). We can't know which
    kind a package is before asking, so we ask for both.
    """
    urls = [build_package_url(mirror_url, package, version, arch)]
    if arch != ARCH_INDEPENDENT:
        urls.append(build_package_url(mirror_url, package, version, ARCH_INDEPENDENT))
    return urls


##############################################################################
# Download
##############################################################################

def retrieve_package(
    url: str,
    path: str,
    session: Optional[requests.Session] = None,
    timeout: float = REQUEST_TIMEOUT,
    quiet: bool = False,
) -> str:
    """
    Download `url` into directory `path` and return the local file path.

    Raises requests.exceptions.RequestException on any connection problem
    or non-2xx answer; the caller decides whether that is fatal.
    The archive is always fetched again, even if a file of the same name
    is already there.
    """
    session = session or requests.Session()
    file_name = os.path.basename(url)
    file_path = os.path.join(path, file_name)
    os.makedirs(path, exist_ok=True)

    if not quiet:
        print(f"Downloading: {file_name} from {url}")
    with session.get(url, timeout=timeout, stream=True) as response:
        response.raise_for_status()
        with open(file_path, "wb") as outf:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                if chunk:
                    outf.write(chunk)
    return file_path


def fetch_package(
    mirror_url: str,
    package: str,
    version: str,
    workdir: str,
    arch: str = DEFAULT_ARCH,
    session: Optional[requests.Session] = None,
    timeout: float = REQUEST_TIMEOUT,
    quiet: bool = False,
) -> str:
    """
    Download the .deb of `package` at `version`, trying the arch-specific
    file first and the Architecture: all file second.

    Raises PackageUnretrievable, naming every URL we tried, if none works.
    """
    session = session or requests.Session()
    urls = candidate_urls(mirror_url, package, version, arch)

    for url in urls:
        try:
            return retrieve_package(url, workdir, session=session, timeout=timeout, quiet=quiet)
        except requests.exceptions.RequestException as e:
            if not quiet:
                print(f"Failed to fetch from {url}: {e}")
            continue

    raise PackageUnretrievable(package, urls)
