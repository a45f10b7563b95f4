# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from txt_reader.core.reader import TxtReader

from .fakes import FakeChannel


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with TxtReader and the channels.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="txt-reader-test",
        log_level="DEBUG",
        log_dir=tmp_path / "logs",
        log_to_file=False,
        chunk_size=16,
        verbose=False,
        start_method="spawn",
        shutdown_timeout_seconds=10.0,
        strict_closures=True,
        task_history_size=16,
    )


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def reader(settings: SimpleNamespace, channel: FakeChannel) -> TxtReader:
    """TxtReader wired to a FakeChannel; the test plays the engine."""
    return TxtReader(channel, settings=settings)


@pytest.fixture()
def sample_file(tmp_path: Path) -> Path:
    """Ten lines, mixed terminators, no newline at the end."""
    path = tmp_path / "sample.txt"
    lines = [f"line {i} {'b' * i}" for i in range(1, 11)]
    path.write_bytes(("\n".join(lines[:5]) + "\r\n" + "\n".join(lines[5:])).encode("utf-8"))
    return path
