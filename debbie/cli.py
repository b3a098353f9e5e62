import argparse
import sys
from typing import List, Optional

from debbie.constants import (
    DEFAULT_ARCH,
    DEFAULT_CRAN_URL,
    DEFAULT_INSTALL_OPTS,
    DEFAULT_MIRROR_URL,
    DEFAULT_RELEASE,
    DEFAULT_SOURCES_API_URL,
)
from debbie.errors import DebbieError
from debbie.installer import InstallOptions, Installer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="debbie",
        description="Install R packages from the precompiled r-cran-* binaries of the Debian archive.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument('packages', nargs='*', help='R packages to install, in this order.')
    parser.add_argument(
        '--url',
        type=str,
        default=None,
        help='Install from this r-cran-*.deb URL instead of looking a package up by name.'
    )
    parser.add_argument(
        '--version',
        type=str,
        default=None,
        help=(
            'Exact Debian version to install (e.g. 1.12.6+dfsg-1).\n'
            'It must be available for --release. Only valid with a single package.'
        )
    )
    parser.add_argument(
        '--release',
        type=str,
        default=DEFAULT_RELEASE,
        help=f"Debian release codename to take binaries from (default: {DEFAULT_RELEASE})."
    )
    parser.add_argument('--mirror-url', type=str, default=DEFAULT_MIRROR_URL,
                        help=f"Debian pool directory of R packages (default: {DEFAULT_MIRROR_URL}).")
    parser.add_argument('--sources-api-url', type=str, default=DEFAULT_SOURCES_API_URL,
                        help=f"sources.debian.org style API (default: {DEFAULT_SOURCES_API_URL}).")
    parser.add_argument('--repos', type=str, default=DEFAULT_CRAN_URL,
                        help=f"CRAN repository for source installs and the dependency index (default: {DEFAULT_CRAN_URL}).")
    parser.add_argument('--arch', type=str, default=DEFAULT_ARCH,
                        help=f"Architecture of the binaries (default: {DEFAULT_ARCH}). 'all' is always tried second.")
    parser.add_argument(
        '--install-opt',
        action='append',
        dest='install_opts',
        default=None,
        help=(
            'Option passed to R CMD INSTALL for binary installs; repeat for several.\n'
            f"Default: {' '.join(DEFAULT_INSTALL_OPTS)}"
        )
    )
    parser.add_argument('--recursive', action=argparse.BooleanOptionalAction, default=True,
                        help='Look for Debian binaries of the dependencies too (default: yes).')
    parser.add_argument('--prefer-binary', action=argparse.BooleanOptionalAction, default=True,
                        help="Don't let newer sources replace repository binaries in source installs (default: yes).")
    parser.add_argument('--source-fallback', action=argparse.BooleanOptionalAction, default=False,
                        help='Install from CRAN sources when the Debian archive has no binary (default: no).')
    parser.add_argument('--clean', action=argparse.BooleanOptionalAction, default=True,
                        help='Move package trees out of usr/lib/R/site-library after unpacking (default: yes).')
    parser.add_argument('--library', type=str, default=None, help='R library to install into.')
    parser.add_argument('--workdir', type=str, default=None,
                        help='Directory for downloads and unpacked trees (default: a temporary directory).')
    parser.add_argument('--keep-workdir', action='store_true',
                        help='Do not delete the temporary working directory afterwards.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only print errors.')
    return parser


def options_from_args(args: argparse.Namespace) -> InstallOptions:
    return InstallOptions(
        release=args.release,
        mirror_url=args.mirror_url,
        sources_api_url=args.sources_api_url,
        repos=args.repos,
        arch=args.arch,
        install_opts=args.install_opts,
        recursive=args.recursive,
        prefer_binary=args.prefer_binary,
        source_fallback=args.source_fallback,
        clean=args.clean,
        quiet=args.quiet,
        workdir=args.workdir,
        keep_workdir=args.keep_workdir,
        library=args.library,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.packages and not args.url:
        parser.error("No packages specified. Use: debbie <pkg1> <pkg2> ... or --url <deb url>")
    if args.version and len(args.packages) != 1:
        parser.error("--version can only be used with exactly one package.")

    installer = Installer(options_from_args(args))

    if args.url:
        try:
            installer.install_url(args.url)
        except DebbieError as e:
            print(f"\nCRITICAL ERROR while installing from '{args.url}': {e}", file=sys.stderr)
            return 1

    for package_name in args.packages:
        try:
            installer.install_package(package_name, version=args.version)
        except DebbieError as e:
            print(f"\nCRITICAL ERROR while installing '{package_name}': {e}", file=sys.stderr)
            return 1

    if not args.quiet:
        print("\nAll packages processed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
