from __future__ import annotations

import logging
from pathlib import Path

import pytest

from fakes import CopyTreeMirror, FakeArchQuery, FakeScanner, RecordingArchiver, make_staging
from kodideb.config import BuildConfig
from kodideb.tools import Toolchain


@pytest.fixture(autouse=True)
def reset_kodideb_logger():
    yield
    logger = logging.getLogger("kodideb")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    root = tmp_path / "tmp"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path: Path, temp_root: Path) -> BuildConfig:
    return BuildConfig(
        staging_dir=make_staging(tmp_path / "staging"),
        prefix="/usr",
        out_dir=tmp_path / "out",
        version="1.0",
        packaging_dir=tmp_path / "packaging",
        temp_root=temp_root,
    )


@pytest.fixture
def archiver() -> RecordingArchiver:
    return RecordingArchiver()


@pytest.fixture
def toolchain(archiver: RecordingArchiver) -> Toolchain:
    return Toolchain(
        mirror=CopyTreeMirror(),
        archiver=archiver,
        scanner=FakeScanner(present=False),
        arch_query=FakeArchQuery("arm64"),
    )
