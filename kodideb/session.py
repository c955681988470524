#!/usr/bin/env python3
"""Packaging session: owns the temporary package root for one build."""

from __future__ import annotations

import logging
import os
import shutil
import signal
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

from .config import BuildConfig
from .metadata import DEFAULT_POSTINST, DESKTOP_ENTRY, ControlRecord, package_filename
from .tools import DEFAULT_ARCHITECTURE, Toolchain
from .utils import (
    KodiDebError,
    PackagingError,
    SessionInterrupted,
    create_temp_dir,
    files_identical,
    remove_tree,
)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)
ICON_RELATIVE = Path("share/icons/hicolor/256x256/apps/kodi.png")
DESKTOP_RELATIVE = Path("usr/share/applications/kodi.desktop")
SCRIPT_MODE = 0o755

TreeRemover = Callable[[Path, logging.Logger], bool]


class PackagingSession:
    """Context manager around one packaging run.

    Entering allocates a unique temporary directory and routes SIGINT/SIGTERM
    into ``SessionInterrupted``. Leaving releases the directory exactly once:
    it is deleted when the block completed, and kept and reported on stderr
    when it raised.
    """

    def __init__(
        self,
        config: BuildConfig,
        toolchain: Optional[Toolchain] = None,
        logger: Optional[logging.Logger] = None,
        remover: TreeRemover = remove_tree,
    ) -> None:
        self.config = config
        self.toolchain = toolchain or Toolchain()
        self.logger = logger or logging.getLogger("kodideb.session")
        self.remover = remover

        self.pkg_dir: Optional[Path] = None
        self.architecture: Optional[str] = None
        self.control: Optional[ControlRecord] = None
        self.artifact: Optional[Path] = None
        self.exit_code: Optional[int] = None
        self.release_count = 0

        self._closing = False
        self._previous_handlers: dict[int, object] = {}

    def __enter__(self) -> "PackagingSession":
        self.allocate()
        try:
            self._install_signal_handlers()
            self.architecture = self._resolve_architecture()
            self._log_inputs()
        except BaseException as exc:
            self._closing = True
            self.release(exc.exit_code if isinstance(exc, SessionInterrupted) else 1)
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._closing = True
        if exc is None:
            code = 0
        elif isinstance(exc, SessionInterrupted):
            code = exc.exit_code
        elif isinstance(exc, SystemExit) and isinstance(exc.code, int):
            code = exc.code
        else:
            code = 1
        self.release(code)
        return False

    @property
    def package_filename(self) -> str:
        return package_filename(self.config.version, self.architecture or DEFAULT_ARCHITECTURE)

    @property
    def prefix_root(self) -> Path:
        return self._require_dir() / self.config.relative_prefix

    @property
    def debian_dir(self) -> Path:
        return self._require_dir() / "DEBIAN"

    @property
    def out_dir(self) -> Path:
        return self.config.out_dir.expanduser().resolve()

    def allocate(self) -> Path:
        try:
            self.pkg_dir = create_temp_dir(prefix="kodi-deb.", root=self.config.temp_root)
        except OSError as exc:
            raise PackagingError(f"Unable to create temporary package directory: {exc}") from exc
        return self.pkg_dir

    def run(self) -> Path:
        """Populate the package root and build the archive."""
        self.populate_tree()
        self.inject_desktop_integration()
        self.write_metadata()
        self.compute_dependencies()
        return self.build_artifact()

    def populate_tree(self) -> None:
        source = self.config.staged_prefix
        if not source.is_dir():
            raise PackagingError(f"Staging tree not found: {source}")

        destination = self.prefix_root
        destination.mkdir(parents=True, exist_ok=True)
        self.logger.info("Copying %s -> %s", source, destination)
        self.toolchain.mirror.mirror(source, destination)

    def inject_desktop_integration(self) -> bool:
        """Write the desktop entry; return True if the icon was (re)written."""
        desktop_path = self._require_dir() / DESKTOP_RELATIVE
        desktop_path.parent.mkdir(parents=True, exist_ok=True)
        desktop_path.write_text(DESKTOP_ENTRY, encoding="utf-8")
        return self.install_icon()

    def install_icon(self) -> bool:
        source = self.prefix_root / ICON_RELATIVE
        destination = self._require_dir() / "usr" / ICON_RELATIVE

        if not source.is_file():
            self.logger.info("No icon at %s; skipping", source)
            return False

        if files_identical(source, destination):
            self.logger.info("Icon identical -> skip")
            return False

        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        destination.chmod(0o644)
        return True

    def write_metadata(self) -> ControlRecord:
        debian_dir = self.debian_dir
        debian_dir.mkdir(parents=True, exist_ok=True)

        template = self.config.template_path
        if template.is_file():
            self.logger.info("Rendering control file from %s", template)
        else:
            self.logger.info("No control template at %s; using default control file", template)

        self.control = ControlRecord.render(template, self.config.version, self.architecture or DEFAULT_ARCHITECTURE)
        self.control.write(debian_dir / "control")

        postinst = debian_dir / "postinst"
        if self.config.postinst_path.is_file():
            shutil.copyfile(self.config.postinst_path, postinst)
        else:
            postinst.write_text(DEFAULT_POSTINST, encoding="utf-8")

        if self.config.prerm_path.is_file():
            shutil.copyfile(self.config.prerm_path, debian_dir / "prerm")

        debian_dir.chmod(SCRIPT_MODE)
        for entry in debian_dir.rglob("*"):
            entry.chmod(SCRIPT_MODE)

        return self.control

    def compute_dependencies(self) -> Optional[str]:
        """Best-effort shared-library scan; never raises on tool failure."""
        if self.control is None:
            raise PackagingError("Control metadata must be written before scanning dependencies")

        scanner = self.toolchain.scanner
        if not scanner.available():
            self.logger.info("dpkg-shlibdeps not found; skipping optional shared-lib dependency scan")
            return None

        binary = self.prefix_root / "bin" / self.config.binary_name
        if not binary.is_file() or not os.access(binary, os.X_OK):
            self.logger.info("Binary not found or not executable at %s; skipping dpkg-shlibdeps", binary)
            return None

        self.logger.info("Computing shared library dependencies for %s", binary)
        try:
            depends = scanner.scan(binary)
        except (KodiDebError, OSError) as exc:
            self.logger.warning("dpkg-shlibdeps failed (non-fatal), continuing: %s", exc)
            return None

        if not depends:
            self.logger.info("No shared library dependencies reported")
            return None

        self.control.merge_field("Depends", depends)
        self.control.write(self.debian_dir / "control")
        return depends

    def build_artifact(self) -> Path:
        out_dir = self.out_dir
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PackagingError(f"Unable to create output directory {out_dir}: {exc}") from exc

        output = out_dir / self.package_filename
        self.logger.info("Building %s ...", output)
        self.toolchain.archiver.build(self._require_dir(), output)

        if not output.is_file():
            raise PackagingError(f"Package was not created at expected path: {output}")

        self.artifact = output
        self.logger.info("Package created: %s", output)
        return output

    def release(self, exit_code: int = 0) -> bool:
        """Delete or preserve the package root. Only the first call acts."""
        if self.release_count:
            return False
        self.release_count += 1
        self._closing = True
        self.exit_code = exit_code

        try:
            if self.pkg_dir is None:
                return True

            if exit_code != 0:
                message = (
                    f"ERROR: packaging failed (exit {exit_code}). "
                    f"Packaging tree preserved at: {self.pkg_dir}"
                )
                self.logger.error(message)
                print(message, file=sys.stderr)
            elif not self.remover(self.pkg_dir, self.logger):
                self.logger.warning("Temporary directory left behind: %s", self.pkg_dir)
        finally:
            self._restore_signal_handlers()
        return True

    def _require_dir(self) -> Path:
        if self.pkg_dir is None:
            raise PackagingError("Packaging session has no directory; enter the session first")
        return self.pkg_dir

    def _resolve_architecture(self) -> str:
        try:
            return self.toolchain.resolve_architecture(self.config.architecture)
        except (KodiDebError, OSError) as exc:
            self.logger.warning("Architecture query failed, using %s: %s", DEFAULT_ARCHITECTURE, exc)
            return DEFAULT_ARCHITECTURE

    def _log_inputs(self) -> None:
        self.logger.info("Packaging:")
        self.logger.info("  STAGING_DIR=%s", self.config.staging_dir)
        self.logger.info("  PREFIX=%s", self.config.prefix)
        self.logger.info("  OUT_DIR=%s", self.config.out_dir)
        self.logger.info("  VERSION=%s", self.config.version)
        self.logger.info("  ARCH=%s", self.architecture)
        self.logger.info("  PACKAGING_DIR=%s", self.config.packaging_dir.expanduser().resolve())
        self.logger.info("  TEMP PKG_DIR=%s", self.pkg_dir)

    def _on_signal(self, signum, frame) -> None:
        if self._closing:
            self.logger.warning("Signal %s received during cleanup; ignoring", signum)
            return
        raise SessionInterrupted(signum)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in INTERRUPT_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


def build_package(
    config: BuildConfig,
    toolchain: Optional[Toolchain] = None,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """Run one complete packaging session and return the artifact path."""
    config.validate()
    with PackagingSession(config, toolchain=toolchain, logger=logger) as session:
        return session.run()
