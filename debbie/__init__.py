"""Install R packages from the precompiled r-cran-* binaries of the Debian archive."""

from debbie.errors import (
    AmbiguousOrMissingPackagePath,
    DebbieError,
    DependencyExpansionFailed,
    InstallFailed,
    MalformedArchive,
    MirrorUnreachable,
    NotFound,
    PackageUnretrievable,
    ReleaseUnavailable,
    VersionMismatch,
)
from debbie.installer import InstallOptions, Installer, install_deb

__version__ = "0.2.0"
