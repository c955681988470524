from __future__ import annotations

from pathlib import Path

from fakes import FailingArchiver
from kodideb import main as main_module
from kodideb.config import BuildConfig
from kodideb.main import build_parser, main, run_cli
from kodideb.utils import SessionInterrupted


def test_parser_positional_inputs_are_optional():
    args = build_parser().parse_args([])
    assert (args.staging_dir, args.prefix, args.out_dir, args.version) == (None, None, None, None)

    args = build_parser().parse_args(["/s", "/usr", "/o", "1.0", "--arch", "arm64"])
    assert (args.staging_dir, args.prefix, args.out_dir, args.version) == ("/s", "/usr", "/o", "1.0")
    assert args.arch == "arm64"


def test_defaults_follow_workspace(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("TMPDIR", str(tmp_path / "tmp"))

    config = BuildConfig.from_args()

    assert config.staging_dir == tmp_path / "staging"
    assert config.out_dir == tmp_path / "out"
    assert config.prefix == "/usr"
    assert config.version == "unknown"
    assert config.packaging_dir == Path("packaging")
    assert config.temp_root == tmp_path / "tmp"
    assert config.architecture is None


def test_defaults_without_workspace(monkeypatch):
    monkeypatch.delenv("GITHUB_WORKSPACE", raising=False)
    config = BuildConfig.from_args()
    assert config.staging_dir == Path("staging")
    assert config.out_dir == Path("out")


def test_run_cli_success(config, toolchain, capsys):
    assert run_cli(config, toolchain=toolchain) == 0
    out = capsys.readouterr().out
    assert "kodi-elementary-1.0_arm64.deb" in out


def test_run_cli_failure_reports_preserved_tree(config, toolchain, temp_root, capsys):
    toolchain.archiver = FailingArchiver()

    assert run_cli(config, toolchain=toolchain) == 1

    preserved = list(temp_root.iterdir())
    assert len(preserved) == 1
    err = capsys.readouterr().err
    assert str(preserved[0]) in err
    assert "Error: dpkg-deb failed" in err


def test_main_rejects_relative_prefix(tmp_path, capsys):
    code = main([str(tmp_path / "staging"), "usr", str(tmp_path / "out"), "1.0"])
    assert code == 1
    assert "Install prefix must be absolute" in capsys.readouterr().err


def test_main_maps_interrupt_to_signal_exit_code(monkeypatch, tmp_path):
    def interrupted(config, toolchain=None, logger=None):
        raise SessionInterrupted(15)

    monkeypatch.setattr(main_module, "build_package", interrupted)
    assert main([str(tmp_path), "/usr", str(tmp_path / "out"), "1.0"]) == 143


def test_main_passes_options_to_config(monkeypatch, tmp_path):
    seen = {}

    def fake_run_cli(config, toolchain=None, verbose=False):
        seen["config"] = config
        seen["verbose"] = verbose
        return 0

    monkeypatch.setattr(main_module, "run_cli", fake_run_cli)
    code = main(
        [
            str(tmp_path / "s"),
            "/opt/kodi",
            str(tmp_path / "o"),
            "2.0",
            "--packaging-dir",
            str(tmp_path / "packaging"),
            "--arch",
            "armhf",
            "--tmpdir",
            str(tmp_path),
            "-v",
        ]
    )

    assert code == 0
    config = seen["config"]
    assert config.prefix == "/opt/kodi"
    assert config.staged_prefix == tmp_path / "s" / "opt" / "kodi"
    assert config.template_path == tmp_path / "packaging" / "control.template"
    assert config.architecture == "armhf"
    assert config.temp_root == tmp_path
    assert seen["verbose"] is True
