"""End-to-end relays against fake uploader scripts.

These run the real locator, staging, invoker and patcher; only the
running-process check is stubbed so the host's process table does not
matter.

Usage:
    pytest tests/integration/ -v
"""
from __future__ import annotations

import dataclasses
import sys
import time

import psutil
import pytest

from picrelay import (
    ErrorCode,
    InMemoryAsset,
    OnDiskAsset,
    RelayOrchestrator,
    RelayOutcome,
    TextBuffer,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="fake tools are shell scripts")

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 1016


@pytest.fixture(autouse=True)
def no_running_uploader(monkeypatch):
    monkeypatch.setattr("picrelay.tool.locator.is_process_running", lambda name: False)


def _relay(config, make_tool, notifier, body=None, **overrides) -> RelayOrchestrator:
    tool = make_tool() if body is None else make_tool(body)
    return RelayOrchestrator(
        dataclasses.replace(config, tool_path=tool, **overrides),
        notifier=notifier,
    )


def _gone(pid: int, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False


class TestEndToEnd:
    async def test_paste_is_uploaded_and_patched(self, config, make_tool, notifier, staging_dir):
        editor = TextBuffer("Screenshot: ")
        orchestrator = _relay(config, make_tool, notifier)

        result = await orchestrator.relay(InMemoryAsset(PNG, "photo.png"), editor)

        assert result.outcome == RelayOutcome.SUCCEEDED
        assert result.url == "https://cdn.example.com/abc.png"
        assert result.patched
        assert editor.get_value() == "Screenshot: ![photo.png](https://cdn.example.com/abc.png)"
        assert list(staging_dir.iterdir()) == []
        assert notifier.failures == []

    async def test_unparsable_output_keeps_placeholder(self, config, make_tool, notifier, staging_dir):
        body = 'case "$1" in\n  -u) echo done ;;\n  *) echo "uPic usage" ;;\nesac\n'
        editor = TextBuffer()
        orchestrator = _relay(config, make_tool, notifier, body)

        result = await orchestrator.relay(InMemoryAsset(PNG, "photo.png"), editor)

        assert result.outcome == RelayOutcome.FAILED
        assert result.error_code == ErrorCode.UNPARSABLE_OUTPUT
        assert editor.get_value() == "![photo.png](photo.png)"
        assert notifier.failures[0].original_ref == "photo.png"
        assert list(staging_dir.iterdir()) == []

    async def test_timeout_leaves_no_uploader_behind(self, config, make_tool, notifier, tmp_path):
        pid_file = tmp_path / "upload.pid"
        body = (
            'case "$1" in\n'
            f'  -u) echo $$ > "{pid_file}"; exec sleep 30 ;;\n'
            '  *) echo "uPic usage" ;;\n'
            "esac\n"
        )
        orchestrator = _relay(config, make_tool, notifier, body, upload_timeout=1.0)

        started = time.monotonic()
        result = await orchestrator.relay(InMemoryAsset(PNG, "photo.png"), TextBuffer())

        assert result.error_code == ErrorCode.TIMEOUT
        assert time.monotonic() - started < 15
        assert _gone(int(pid_file.read_text().strip()))

    async def test_missing_tool_reports_diagnostics(self, config, notifier, tmp_path, monkeypatch):
        monkeypatch.setattr("picrelay.tool.locator.well_known_paths", lambda name: [])
        monkeypatch.setattr("picrelay.tool.locator.lookup_commands", lambda name: [])
        monkeypatch.setattr("picrelay.tool.locator.path_scan_candidates", lambda name: [])
        orchestrator = RelayOrchestrator(
            dataclasses.replace(config, tool_path=str(tmp_path / "nowhere" / "upic")),
            notifier=notifier,
        )
        editor = TextBuffer()

        result = await orchestrator.relay(InMemoryAsset(PNG, "photo.png"), editor)

        assert result.error_code == ErrorCode.NOT_FOUND
        assert editor.get_value() == "![photo.png](photo.png)"
        report = orchestrator.locator.last_report
        assert report.candidates_tried[0].path == str(tmp_path / "nowhere" / "upic")
        assert not report.candidates_tried[0].exists

    async def test_document_with_spaces_in_path(self, config, make_tool, notifier, vault):
        (vault / "my images").mkdir()
        (vault / "my images" / "a b.png").write_bytes(PNG)
        editor = TextBuffer("![a b](<my images/a b.png>)\n")
        orchestrator = _relay(config, make_tool, notifier)

        results = await orchestrator.relay_document(editor)

        assert [r.outcome for r in results] == [RelayOutcome.SUCCEEDED]
        assert editor.get_value() == "![a b](https://cdn.example.com/abc.png)\n"

    async def test_on_disk_source_is_not_staged(self, config, make_tool, notifier, vault, staging_dir):
        (vault / "a.png").write_bytes(PNG)
        editor = TextBuffer()
        orchestrator = _relay(config, make_tool, notifier)

        result = await orchestrator.relay(OnDiskAsset("a.png"), editor)

        assert result.patched
        assert editor.get_value() == "![a.png](https://cdn.example.com/abc.png)"
        assert (vault / "a.png").exists()
        assert list(staging_dir.iterdir()) == []
