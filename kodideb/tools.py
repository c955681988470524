#!/usr/bin/env python3
"""External tools used to assemble a package, behind small interfaces."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from .metadata import parse_shlibs_output
from .utils import (
    CommandExecutionError,
    PackagingError,
    command_exists,
    run_command,
)

DEFAULT_ARCHITECTURE = "amd64"

# dpkg-shlibdeps refuses to run without a source control file in ./debian.
SHLIBDEPS_STUB_CONTROL = """Source: kodi

Package: kodi
Architecture: any
"""


class TreeMirror(Protocol):
    def mirror(self, source: Path, destination: Path) -> None:
        """Make ``destination`` an exact copy of ``source``."""


class ArchiveBuilder(Protocol):
    def build(self, package_root: Path, output: Path) -> None:
        """Produce ``output`` from a populated package root."""


class DependencyScanner(Protocol):
    def available(self) -> bool:
        ...

    def scan(self, binary: Path) -> Optional[str]:
        """Return the Depends value for ``binary``, or None."""


class ArchQuery(Protocol):
    def architecture(self) -> Optional[str]:
        """Return the host package architecture, or None if unknown."""


class RsyncTreeMirror:
    """Mirror a directory with rsync, deleting stray destination entries."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("kodideb.tools")

    def mirror(self, source: Path, destination: Path) -> None:
        if not command_exists("rsync"):
            raise PackagingError("rsync is required to copy the staging tree")

        cmd = [
            "rsync",
            "-a",
            "--delete",
            "--links",
            "--perms",
            "--chmod=u=rwX,go=rX",
            f"{source}/",
            f"{destination}/",
        ]
        try:
            run_command(cmd, self.logger)
        except CommandExecutionError as exc:
            raise PackagingError(f"Copying staging tree failed: {exc}") from exc


class DpkgDebBuilder:
    """Build a .deb with dpkg-deb under fakeroot so files are owned by root."""

    def __init__(self, logger: Optional[logging.Logger] = None, use_fakeroot: bool = True) -> None:
        self.logger = logger or logging.getLogger("kodideb.tools")
        self.use_fakeroot = use_fakeroot

    def build(self, package_root: Path, output: Path) -> None:
        if not command_exists("dpkg-deb"):
            raise PackagingError("dpkg-deb is required to build the package")

        cmd = ["dpkg-deb", "--build", str(package_root), str(output)]
        if self.use_fakeroot:
            if not command_exists("fakeroot"):
                raise PackagingError("fakeroot is required to build the package")
            cmd = ["fakeroot"] + cmd

        try:
            run_command(cmd, self.logger)
        except CommandExecutionError as exc:
            raise PackagingError(f"dpkg-deb failed: {exc}") from exc


class ShlibdepsScanner:
    """Compute shared-library dependencies with dpkg-shlibdeps."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("kodideb.tools")

    def available(self) -> bool:
        return command_exists("dpkg-shlibdeps")

    def scan(self, binary: Path) -> Optional[str]:
        with tempfile.TemporaryDirectory(prefix="kodi-shlibs.") as scratch:
            debian_dir = Path(scratch) / "debian"
            debian_dir.mkdir()
            (debian_dir / "control").write_text(SHLIBDEPS_STUB_CONTROL, encoding="utf-8")

            _, lines = run_command(
                ["dpkg-shlibdeps", "-O", str(binary)],
                self.logger,
                cwd=Path(scratch),
                merge_stderr=False,
            )
        return parse_shlibs_output(lines)


class DpkgArchQuery:
    """Ask dpkg for the host architecture."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("kodideb.tools")

    def architecture(self) -> Optional[str]:
        if not command_exists("dpkg"):
            return None
        returncode, lines = run_command(
            ["dpkg", "--print-architecture"],
            self.logger,
            check=False,
            merge_stderr=False,
            quiet=True,
        )
        if returncode != 0:
            return None
        arch = next((line for line in lines if line), "")
        return arch or None


@dataclass
class Toolchain:
    """The set of external tools a packaging session drives."""

    mirror: TreeMirror = field(default_factory=RsyncTreeMirror)
    archiver: ArchiveBuilder = field(default_factory=DpkgDebBuilder)
    scanner: DependencyScanner = field(default_factory=ShlibdepsScanner)
    arch_query: ArchQuery = field(default_factory=DpkgArchQuery)

    def resolve_architecture(self, override: Optional[str] = None) -> str:
        """Explicit override, then the queried value, then the default."""
        if override:
            return override
        return self.arch_query.architecture() or DEFAULT_ARCHITECTURE
