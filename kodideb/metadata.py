#!/usr/bin/env python3
"""Debian control metadata, desktop entry and maintainer script content."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PACKAGE_BASENAME = "kodi-elementary"
VERSION_TOKEN = "%VERSION%"
ARCH_TOKEN = "%ARCH%"
SHLIBS_DEPENDS_PREFIX = "shlibs:Depends="

DEFAULT_CONTROL_TEMPLATE = """Package: kodi
Version: %VERSION%
Section: video
Priority: optional
Architecture: %ARCH%
Maintainer: Kodi Packager <noreply@example.com>
Description: Kodi Media Center (custom build)
"""

DESKTOP_ENTRY = """[Desktop Entry]
Name=Kodi
GenericName=Media Center
Comment=Play media and manage library
Exec=/usr/bin/kodi %U
Terminal=false
Type=Application
Categories=AudioVideo;Player;Video;
MimeType=video/*;audio/*;
Icon=kodi
StartupNotify=true
"""

DEFAULT_POSTINST = """#!/bin/sh
set -e
if command -v update-desktop-database >/dev/null 2>&1; then
  update-desktop-database -q
fi
if command -v gtk-update-icon-cache >/dev/null 2>&1; then
  gtk-update-icon-cache -f /usr/share/icons/hicolor || true
fi
exit 0
"""


def package_filename(version: str, architecture: str) -> str:
    """Deterministic artifact name for a version/architecture pair."""
    return f"{PACKAGE_BASENAME}-{version}_{architecture}.deb"


def substitute_placeholders(template: str, version: str, architecture: str) -> str:
    """Replace every literal version and architecture token."""
    return template.replace(VERSION_TOKEN, version).replace(ARCH_TOKEN, architecture)


def parse_control_fields(control_text: str) -> dict[str, str]:
    """Parse key fields from Debian control text.

    Keys are lower-cased; continuation lines are folded into the previous
    field.
    """
    fields: dict[str, str] = {}
    current_key: Optional[str] = None

    for line in control_text.splitlines():
        if not line.strip():
            continue

        if line[0].isspace() and current_key:
            fields[current_key] = f"{fields[current_key]} {line.strip()}".strip()
            continue

        if ":" not in line:
            continue

        key, value = line.split(":", 1)
        normalized_key = key.strip().lower()
        fields[normalized_key] = value.strip()
        current_key = normalized_key

    return fields


def parse_shlibs_output(lines: list[str]) -> Optional[str]:
    """Extract the dependency string from ``dpkg-shlibdeps -O`` output."""
    for line in lines:
        stripped = line.strip()
        if stripped.startswith(SHLIBS_DEPENDS_PREFIX):
            value = stripped[len(SHLIBS_DEPENDS_PREFIX):].strip()
            return value or None
    return None


@dataclass
class ControlRecord:
    """The DEBIAN/control file of a package root."""

    text: str

    @classmethod
    def from_template(cls, template: str, version: str, architecture: str) -> "ControlRecord":
        text = substitute_placeholders(template, version, architecture)
        if not text.endswith("\n"):
            text += "\n"
        return cls(text)

    @classmethod
    def render(
        cls,
        template_path: Optional[Path],
        version: str,
        architecture: str,
    ) -> "ControlRecord":
        """Render from a template file when present, else from the default."""
        if template_path is not None and template_path.is_file():
            template = template_path.read_text(encoding="utf-8")
        else:
            template = DEFAULT_CONTROL_TEMPLATE
        return cls.from_template(template, version, architecture)

    @property
    def fields(self) -> dict[str, str]:
        return parse_control_fields(self.text)

    def merge_field(self, key: str, value: str) -> None:
        """Add ``value`` to a comma-separated field of the binary paragraph.

        An existing field gets ``existing, value``; a missing one is added at
        the end of the first paragraph. Trailing blank lines are dropped.
        """
        lines = self.text.split("\n")
        while lines and not lines[-1].strip():
            lines.pop()

        paragraph_end = next((idx for idx, line in enumerate(lines) if not line.strip()), len(lines))

        start = None
        for idx in range(paragraph_end):
            line = lines[idx]
            if line[:1].isspace() or ":" not in line:
                continue
            if line.split(":", 1)[0].strip().lower() == key.lower():
                start = idx
                break

        if start is None:
            lines.insert(paragraph_end, f"{key}: {value}")
        else:
            last = start
            while last + 1 < paragraph_end and lines[last + 1][:1].isspace():
                last += 1
            current = lines[start].split(":", 1)[1].strip()
            if last == start and not current:
                lines[start] = f"{key}: {value}"
            else:
                lines[last] = f"{lines[last].rstrip().rstrip(',')}, {value}"

        self.text = "\n".join(lines) + "\n"

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.text, encoding="utf-8")
