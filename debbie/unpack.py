import os
import shutil
import tarfile

from debian.arfile import ArError
from debian.debfile import DebError, DebFile

from debbie.constants import SITE_LIBRARY
from debbie.errors import AmbiguousOrMissingPackagePath, MalformedArchive


def _extract(tar: tarfile.TarFile, dest_path: str):
    # extraction filters: Python 3.12+, and 3.8-3.11 from their 2023 security releases on
    if hasattr(tarfile, "tar_filter"):
        tar.extractall(dest_path, filter="tar")
    else:
        tar.extractall(dest_path)


def unpack_package(archive_path: str, dest_path: str, clean: bool = True) -> str:
    """
    Extract the data member (data.tar.xz, data.tar.gz, ...) of a .deb into
    `dest_path` and return the directory that holds the R package trees.

    A Debian R package installs to usr/lib/R/site-library/<Package>/.
    With `clean`, the package directories are copied out of that prefix
    straight into `dest_path` and the usr/ tree is removed, so the result is
    dest_path/<Package>/. Without it, the usr/ layout is left as-is and the
    returned directory is dest_path/usr/lib/R/site-library.

    Anything that prevents us from reading the archive (not an ar archive,
    no data member, broken tarball) raises MalformedArchive.
    """
    os.makedirs(dest_path, exist_ok=True)
    try:
        deb = DebFile(archive_path)
        try:
            with deb.data.tgz() as tar:
                _extract(tar, dest_path)
        finally:
            deb.close()
    except (ArError, DebError, tarfile.TarError) as e:
        raise MalformedArchive(archive_path, str(e)) from e
    except (EOFError, OSError) as e:
        raise MalformedArchive(archive_path, f"cannot read archive: {e}") from e

    library_dir = os.path.join(dest_path, SITE_LIBRARY)
    if not os.path.isdir(library_dir):
        raise MalformedArchive(
            archive_path,
            f"data member does not contain {SITE_LIBRARY}/, this is not an R package",
        )

    if not clean:
        return library_dir

    for entry in sorted(os.listdir(library_dir)):
        src = os.path.join(library_dir, entry)
        if os.path.isdir(src):
            shutil.copytree(src, os.path.join(dest_path, entry), symlinks=True, dirs_exist_ok=True)
    shutil.rmtree(os.path.join(dest_path, "usr"))
    return dest_path


def locate_package_tree(package: str, search_dir: str) -> str:
    """
    Find the directory of `package` among the subdirectories of `search_dir`.

    The requested name and the directory name can differ in case:
    we look up "rcpp" in the Debian archive but the tree is called "Rcpp".
    Matching is therefore case-insensitive, and it must be unique.
    """
    wanted = package.lower()
    matches = []
    if os.path.isdir(search_dir):
        for entry in sorted(os.listdir(search_dir)):
            if entry.lower() == wanted and os.path.isdir(os.path.join(search_dir, entry)):
                matches.append(entry)

    if len(matches) != 1:
        raise AmbiguousOrMissingPackagePath(package, search_dir, matches)
    return os.path.join(search_dir, matches[0])
