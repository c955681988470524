#!/usr/bin/env python3
"""Build inputs and their environment-derived defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .utils import ValidationError, default_temp_root

DEFAULT_PREFIX = "/usr"
DEFAULT_VERSION = "unknown"
DEFAULT_PACKAGING_DIR = Path("packaging")
BINARY_NAME = "kodi"


def workspace_root() -> Path:
    return Path(os.environ.get("GITHUB_WORKSPACE") or ".")


@dataclass
class BuildConfig:
    """Inputs of one packaging run."""

    staging_dir: Path
    prefix: str
    out_dir: Path
    version: str
    packaging_dir: Path = DEFAULT_PACKAGING_DIR
    architecture: Optional[str] = None
    temp_root: Optional[Path] = None
    binary_name: str = BINARY_NAME

    @classmethod
    def from_args(
        cls,
        staging_dir: Optional[str] = None,
        prefix: Optional[str] = None,
        out_dir: Optional[str] = None,
        version: Optional[str] = None,
        packaging_dir: Optional[str] = None,
        architecture: Optional[str] = None,
        temp_root: Optional[str] = None,
    ) -> "BuildConfig":
        """Fill omitted inputs with their documented defaults."""
        root = workspace_root()
        return cls(
            staging_dir=Path(staging_dir) if staging_dir else root / "staging",
            prefix=prefix or DEFAULT_PREFIX,
            out_dir=Path(out_dir) if out_dir else root / "out",
            version=version or DEFAULT_VERSION,
            packaging_dir=Path(packaging_dir) if packaging_dir else DEFAULT_PACKAGING_DIR,
            architecture=architecture or None,
            temp_root=Path(temp_root) if temp_root else default_temp_root(),
        )

    def validate(self) -> None:
        if not self.prefix.startswith("/"):
            raise ValidationError(f"Install prefix must be absolute: {self.prefix}")
        if not self.version.strip():
            raise ValidationError("Version must not be empty")
        if any(char.isspace() for char in self.version):
            raise ValidationError(f"Version must not contain whitespace: {self.version!r}")

    @property
    def relative_prefix(self) -> str:
        """The prefix without its leading slash, for joining under a root."""
        return self.prefix.strip("/")

    @property
    def staged_prefix(self) -> Path:
        return self.staging_dir / self.relative_prefix

    @property
    def template_path(self) -> Path:
        return self.packaging_dir / "control.template"

    @property
    def postinst_path(self) -> Path:
        return self.packaging_dir / "postinst"

    @property
    def prerm_path(self) -> Path:
        return self.packaging_dir / "prerm"
