"""
Defaults shared by the resolver, fetcher, unpacker and installer.

Every one of these can be overridden per run from the command line
(see debbie.cli); they are only the values used when nothing else is given.
"""

# Debian pool directory that holds the r-cran-* packages.
DEFAULT_MIRROR_URL = "https://deb.debian.org/debian/pool/main/r"

# sources.debian.org API, answers /r-cran-<name>/ with the available versions.
DEFAULT_SOURCES_API_URL = "https://sources.debian.org/api/src"

# CRAN repository used for source installs and for the PACKAGES index
# that the transitive dependency expansion reads.
DEFAULT_CRAN_URL = "https://cloud.r-project.org"

# Debian unstable always carries the newest r-cran-* builds.
DEFAULT_RELEASE = "sid"

DEFAULT_ARCH = "amd64"
ARCH_INDEPENDENT = "all"

PACKAGE_PREFIX = "r-cran-"

# Where Debian puts R packages inside the data member of the .deb
SITE_LIBRARY = "usr/lib/R/site-library"

DEFAULT_INSTALL_OPTS = ["--no-docs", "--no-multiarch", "--no-demo"]

# Fields of an installed package's DESCRIPTION that it needs at run time.
RUNTIME_DEPENDENCY_FIELDS = ("Depends", "Imports")

# Edges followed when expanding a dependency closure. LinkingTo matters
# there because anything in the closure may have to be compiled.
# Suggests and Enhances are never followed.
STRONG_DEPENDENCY_FIELDS = ("Depends", "Imports", "LinkingTo")

# The implicit runtime dependency, never a package.
RUNTIME_NAME = "R"

# Packages that ship with R itself; they are never on CRAN nor in Debian as r-cran-*.
BASE_PACKAGES = frozenset({
    "base", "compiler", "datasets", "graphics", "grDevices", "grid",
    "methods", "parallel", "splines", "stats", "stats4", "tcltk",
    "tools", "utils",
})

REQUEST_TIMEOUT = 30
