from __future__ import annotations

from kodideb.metadata import (
    DEFAULT_CONTROL_TEMPLATE,
    ControlRecord,
    package_filename,
    parse_control_fields,
    parse_shlibs_output,
    substitute_placeholders,
)


def test_package_filename():
    assert package_filename("20251129-abcdef0", "amd64") == "kodi-elementary-20251129-abcdef0_amd64.deb"


def test_substitution_replaces_every_token():
    text = substitute_placeholders("%VERSION% %ARCH% %VERSION%-%ARCH%", "2.1", "arm64")
    assert text == "2.1 arm64 2.1-arm64"


def test_substitution_is_literal():
    assert substitute_placeholders("Version: %VERSION%", "1.0|$&", "amd64") == "Version: 1.0|$&"


def test_default_template_renders_base_fields(tmp_path):
    record = ControlRecord.render(tmp_path / "missing.template", "1.0", "amd64")

    assert record.fields == {
        "package": "kodi",
        "version": "1.0",
        "section": "video",
        "priority": "optional",
        "architecture": "amd64",
        "maintainer": "Kodi Packager <noreply@example.com>",
        "description": "Kodi Media Center (custom build)",
    }
    assert "%" not in record.text
    assert DEFAULT_CONTROL_TEMPLATE.count("%VERSION%") == 1


def test_template_without_trailing_newline_gets_one():
    record = ControlRecord.from_template("Package: kodi\nVersion: %VERSION%", "3", "amd64")
    record.merge_field("Depends", "libc6")
    assert record.text == "Package: kodi\nVersion: 3\nDepends: libc6\n"


def test_merge_field_extends_existing_depends():
    record = ControlRecord("Package: kodi\nDepends: python3\nDescription: d\n")
    record.merge_field("Depends", "libc6 (>= 2.34)")
    assert record.text == "Package: kodi\nDepends: python3, libc6 (>= 2.34)\nDescription: d\n"
    assert record.text.count("Depends") == 1


def test_merge_field_extends_folded_depends():
    record = ControlRecord("Package: kodi\nDepends: python3,\n libx11-6\nDescription: d\n")
    record.merge_field("depends", "libc6")
    assert record.text == "Package: kodi\nDepends: python3,\n libx11-6, libc6\nDescription: d\n"


def test_merge_field_fills_empty_value():
    record = ControlRecord("Package: kodi\nDepends:\n")
    record.merge_field("Depends", "libc6")
    assert record.text == "Package: kodi\nDepends: libc6\n"


def test_merge_field_stays_in_first_paragraph():
    record = ControlRecord("Package: kodi\nVersion: 1\n\n\n")
    record.merge_field("Depends", "libc6")
    assert record.text == "Package: kodi\nVersion: 1\nDepends: libc6\n"

    record = ControlRecord("Package: kodi\n\nPackage: kodi-data\nDepends: kodi\n")
    record.merge_field("Depends", "libc6")
    assert record.text == "Package: kodi\nDepends: libc6\n\nPackage: kodi-data\nDepends: kodi\n"


def test_parse_control_folds_continuation_lines():
    fields = parse_control_fields(
        "Package: kodi\n"
        "Description: Kodi Media Center\n"
        " A custom build.\n"
        "\n"
        "not a field\n"
    )
    assert fields == {"package": "kodi", "description": "Kodi Media Center A custom build."}


def test_parse_shlibs_output():
    lines = ["", "shlibs:Depends=libc6 (>= 2.34), libgcc-s1 (>= 3.0)"]
    assert parse_shlibs_output(lines) == "libc6 (>= 2.34), libgcc-s1 (>= 3.0)"
    assert parse_shlibs_output(["shlibs:Depends="]) is None
    assert parse_shlibs_output(["dpkg-shlibdeps: warning: something"]) is None


def test_write_creates_parent(tmp_path):
    target = tmp_path / "DEBIAN" / "control"
    ControlRecord("Package: kodi\n").write(target)
    assert target.read_text(encoding="utf-8") == "Package: kodi\n"
