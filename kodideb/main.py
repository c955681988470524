#!/usr/bin/env python3
"""Entry point for kodi-build-deb."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .config import DEFAULT_PACKAGING_DIR, DEFAULT_PREFIX, DEFAULT_VERSION, BuildConfig
from .session import build_package
from .tools import Toolchain
from .utils import KodiDebError, SessionInterrupted, setup_logging


def run_cli(config: BuildConfig, toolchain: Optional[Toolchain] = None, verbose: bool = False) -> int:
    """Build the package and map the outcome to a process exit code."""
    logger = setup_logging("kodideb", logging.DEBUG if verbose else logging.INFO)

    try:
        artifact = build_package(config, toolchain=toolchain, logger=logger.getChild("session"))
    except SessionInterrupted as exc:
        logger.error("Packaging interrupted: %s", exc)
        return exc.exit_code
    except KodiDebError as exc:
        logger.error("Operation failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Package created: {artifact}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build command-line parser."""
    parser = argparse.ArgumentParser(
        prog="kodi-build-deb",
        description="Assemble a Kodi .deb package from a staged install tree.",
    )
    parser.add_argument(
        "staging_dir",
        nargs="?",
        help="Staged install tree (default: ${GITHUB_WORKSPACE:-.}/staging)",
    )
    parser.add_argument(
        "prefix",
        nargs="?",
        help=f"Install prefix inside the staging tree (default: {DEFAULT_PREFIX})",
    )
    parser.add_argument(
        "out_dir",
        nargs="?",
        help="Directory receiving the .deb (default: ${GITHUB_WORKSPACE:-.}/out)",
    )
    parser.add_argument(
        "version",
        nargs="?",
        help=f"Package version (default: {DEFAULT_VERSION})",
    )
    parser.add_argument(
        "--packaging-dir",
        help=f"Directory holding control.template, postinst and prerm (default: {DEFAULT_PACKAGING_DIR})",
    )
    parser.add_argument("--arch", help="Target architecture (default: dpkg --print-architecture, else amd64)")
    parser.add_argument("--tmpdir", help="Where to create the temporary package root (default: $TMPDIR or /tmp)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log external commands")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Program entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = BuildConfig.from_args(
        staging_dir=args.staging_dir,
        prefix=args.prefix,
        out_dir=args.out_dir,
        version=args.version,
        packaging_dir=args.packaging_dir,
        architecture=args.arch,
        temp_root=args.tmpdir,
    )
    return run_cli(config, verbose=args.verbose)


if __name__ == "__main__":
    raise SystemExit(main())
