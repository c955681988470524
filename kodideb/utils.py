#!/usr/bin/env python3
"""Utility helpers for kodideb."""

from __future__ import annotations

import filecmp
import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

LogCallback = Optional[Callable[[str], None]]
ANSI_ESCAPE_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~]|[\(\)][0-9A-Za-z])")


class KodiDebError(Exception):
    """Base exception for all kodideb errors."""


class ValidationError(KodiDebError):
    """Raised when input validation fails."""


class CommandExecutionError(KodiDebError):
    """Raised when a subprocess returns a non-zero exit status."""


class PackagingError(KodiDebError):
    """Raised when a fatal packaging step fails."""


class SessionInterrupted(KodiDebError):
    """Raised inside a packaging session when SIGINT or SIGTERM arrives."""

    def __init__(self, signum: int) -> None:
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum

    @property
    def exit_code(self) -> int:
        return 128 + self.signum


def setup_logging(name: str = "kodideb", level: int = logging.INFO) -> logging.Logger:
    """Create and configure a logger with consistent formatting."""
    logger = logging.getLogger(name)
    if logger.handlers:
        logger.setLevel(level)
        return logger

    logger.setLevel(level)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logger.addHandler(stream_handler)
    return logger


def default_temp_root() -> Path:
    return Path(os.environ.get("TMPDIR") or "/tmp")


def create_temp_dir(prefix: str = "kodi-deb.", root: Optional[Path] = None) -> Path:
    """Create a process-unique temporary directory for the package root."""
    return Path(tempfile.mkdtemp(prefix=prefix, dir=str(root or default_temp_root())))


def command_exists(binary: str) -> bool:
    """Return True if a binary is available in PATH."""
    return shutil.which(binary) is not None


def is_root() -> bool:
    """Return True when running with root privileges."""
    try:
        return os.geteuid() == 0
    except AttributeError:
        return False


def files_identical(first: Path, second: Path) -> bool:
    """Byte-compare two files; a missing file is never identical."""
    if not first.is_file() or not second.is_file():
        return False
    return filecmp.cmp(first, second, shallow=False)


def strip_ansi_escapes(text: str) -> str:
    """Remove ANSI terminal escape codes from a log line."""
    return ANSI_ESCAPE_RE.sub("", text)


def run_command(
    cmd: list[str],
    logger: logging.Logger,
    cwd: Optional[Path] = None,
    env: Optional[dict[str, str]] = None,
    log_callback: LogCallback = None,
    check: bool = True,
    merge_stderr: bool = True,
    quiet: bool = False,
) -> tuple[int, list[str]]:
    """Run a command and stream its output line-by-line.

    With ``merge_stderr`` disabled stderr is discarded, so the returned lines
    are the command's stdout only. ``quiet`` logs output at DEBUG instead of
    INFO. If reading is interrupted by an exception the child is killed and
    reaped before the exception propagates.
    """
    logger.debug("Running command: %s", " ".join(cmd))

    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    process = subprocess.Popen(
        cmd,
        cwd=str(cwd) if cwd else None,
        env=process_env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
        text=True,
        bufsize=1,
    )

    output_lines: list[str] = []
    output_level = logging.DEBUG if quiet else logging.INFO
    assert process.stdout is not None

    try:
        for line in iter(process.stdout.readline, ""):
            stripped = strip_ansi_escapes(line.rstrip("\n")).strip()
            output_lines.append(stripped)
            if stripped:
                logger.log(output_level, stripped)
                if log_callback:
                    log_callback(stripped)
    except BaseException:
        process.kill()
        process.wait()
        raise
    finally:
        process.stdout.close()

    process.wait()

    if check and process.returncode != 0:
        joined = "\n".join(output_lines)
        raise CommandExecutionError(
            f"Command failed with exit code {process.returncode}: {' '.join(cmd)}\n{joined}"
        )

    return process.returncode, output_lines


CommandRunner = Callable[..., tuple[int, list[str]]]


def _elevated(cmd: list[str]) -> Optional[list[str]]:
    """Prefix a command for privileged execution, or None when impossible."""
    if is_root():
        return cmd
    if command_exists("sudo"):
        return ["sudo", "-n"] + cmd
    return None


def remove_tree(
    path: Path,
    logger: logging.Logger,
    runner: CommandRunner = run_command,
) -> bool:
    """Delete a directory tree, escalating when plain removal is refused.

    Strategies, in order: ``shutil.rmtree``; reassigning ownership to the
    current user and retrying; elevated ``rm -rf``. Returns True when the path
    is gone. Never raises.
    """
    try:
        shutil.rmtree(path)
        return True
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.warning("Plain removal of %s failed: %s", path, exc)

    owner = f"{os.getuid()}:{os.getgid()}"
    chown_cmd = _elevated(["chown", "-R", owner, str(path)])
    if chown_cmd is not None:
        try:
            runner(chown_cmd, logger, check=True)
            shutil.rmtree(path)
            return True
        except (KodiDebError, OSError) as exc:
            logger.warning("Removal after ownership reassignment failed: %s", exc)

    rm_cmd = _elevated(["rm", "-rf", str(path)])
    if rm_cmd is not None:
        try:
            runner(rm_cmd, logger, check=True)
        except (KodiDebError, OSError) as exc:
            logger.warning("Elevated removal failed: %s", exc)

    if path.exists():
        logger.warning("Could not remove temporary directory %s; remove it manually", path)
        return False
    return True
