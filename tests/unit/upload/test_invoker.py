"""Tests for UploadInvoker against fake uploader scripts."""

from __future__ import annotations

import shlex
import sys
import time

import pytest

from picrelay.errors import (
    ErrorCode,
    PicrelayTimeoutError,
    PicrelayToolCrashError,
    PicrelayToolNotFoundError,
    PicrelayUnparsableOutputError,
)
from picrelay.upload import UploadInvoker, build_upload_command

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake tools are shell scripts")


class TestBuildUploadCommand:
    def test_posix_quotes_paths(self):
        command = build_upload_command("/opt/my tools/upic", "/tmp/a b.png", platform="linux")
        assert shlex.split(command) == ["/opt/my tools/upic", "-u", "/tmp/a b.png", "-o", "url"]

    def test_posix_metacharacters_are_inert(self):
        command = build_upload_command("upic", "/tmp/$(rm -rf x);.png", platform="darwin")
        assert shlex.split(command)[2] == "/tmp/$(rm -rf x);.png"

    def test_windows(self):
        command = build_upload_command("C:\\Program Files\\uPic\\uPic.exe", "C:\\tmp\\a.png", platform="win32")
        assert command == '"C:\\Program Files\\uPic\\uPic.exe" -u C:\\tmp\\a.png -o url'


@posix_only
class TestInvoke:
    async def test_success(self, make_tool, tmp_path, metrics):
        image = tmp_path / "photo one.png"
        image.write_bytes(b"\x89PNG")
        invoker = UploadInvoker(metrics)
        url = await invoker.invoke(make_tool(), str(image), timeout=5)
        assert url == "https://cdn.example.com/abc.png"
        assert [t["name"] for t in metrics.timings] == ["picrelay.upload_duration_ms"]

    async def test_arguments_passed_verbatim(self, make_tool, tmp_path):
        log = tmp_path / "args"
        tool = make_tool(f'printf "%s\\n" "$@" > "{log}"\necho https://x.example/y.png\n')
        await UploadInvoker().invoke(tool, "/tmp/with space.png", timeout=5)
        assert log.read_text().splitlines() == ["-u", "/tmp/with space.png", "-o", "url"]

    async def test_url_with_nonzero_exit_is_success(self, make_tool):
        tool = make_tool("echo https://x.example/y.png; echo 'warn' >&2; exit 1")
        assert await UploadInvoker().invoke(tool, "/tmp/a.png", timeout=5) == "https://x.example/y.png"

    async def test_zero_exit_without_url(self, make_tool):
        with pytest.raises(PicrelayUnparsableOutputError) as exc_info:
            await UploadInvoker().invoke(make_tool("echo done"), "/tmp/a.png", timeout=5)
        assert exc_info.value.code == ErrorCode.UNPARSABLE_OUTPUT
        assert exc_info.value.context["stdout"].strip() == "done"

    async def test_crash(self, make_tool):
        with pytest.raises(PicrelayToolCrashError) as exc_info:
            await UploadInvoker().invoke(make_tool("echo 'bad token' >&2; exit 2"), "/tmp/a.png", timeout=5)
        assert "bad token" in exc_info.value.message
        assert exc_info.value.context["exit_code"] == 2

    async def test_missing_tool(self, tmp_path):
        with pytest.raises(PicrelayToolNotFoundError):
            await UploadInvoker().invoke(str(tmp_path / "gone"), "/tmp/a.png", timeout=5)

    async def test_tool_reported_timeout(self, make_tool):
        with pytest.raises(PicrelayTimeoutError):
            await UploadInvoker().invoke(make_tool("echo 'upload timed out' >&2; exit 1"), "/tmp/a.png", timeout=5)

    async def test_hard_timeout(self, make_tool):
        started = time.monotonic()
        with pytest.raises(PicrelayTimeoutError) as exc_info:
            await UploadInvoker().invoke(make_tool("exec sleep 30"), "/tmp/a.png", timeout=0.5)
        assert time.monotonic() - started < 10
        assert exc_info.value.message == "Upload timed out after 0.5 seconds."
