"""Shared test fixtures for the picrelay test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from picrelay.config import RelayConfig
from picrelay.models import FailureNotice

# A well-behaved fake uploader: prints usage for probe flags and a URL
# for ``-u <file> -o url``.
FAKE_UPLOADER = """\
case "$1" in
  -u) echo "https://cdn.example.com/abc.png" ;;
  *) echo "uPic usage: upic -u <file> -o url" ;;
esac
"""


def write_script(directory: Path, name: str, body: str) -> str:
    """Write an executable ``/bin/sh`` script and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)
    return str(path)


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def count(self, name: str, **tags: str) -> int:
        return sum(
            entry["value"]
            for entry in self.increments
            if entry["name"] == name
            and all((entry["tags"] or {}).get(k) == v for k, v in tags.items())
        )


class RecordingNotifier:
    """A host notifier that keeps every message."""

    def __init__(self) -> None:
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.failures: list[FailureNotice] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def failure(self, notice: FailureNotice) -> None:
        self.failures.append(notice)


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def config(staging_dir: Path, vault: Path) -> RelayConfig:
    """Test configuration writing into tmp dirs."""
    return RelayConfig(staging_dir=str(staging_dir), vault_root=str(vault))


@pytest.fixture
def make_tool(tmp_path: Path):
    """Factory writing a fake uploader script into ``tmp_path/bin``."""

    def _make(body: str = FAKE_UPLOADER, name: str = "upic") -> str:
        return write_script(tmp_path / "bin", name, body)

    return _make
