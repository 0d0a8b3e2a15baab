"""Subprocess helpers shared by tool discovery and upload invocation.

Every child is started in its own session (process group) on POSIX so a
timeout can signal the whole tree: a shell wrapper and the uploader it
launched both go away, leaving no orphan behind.
"""

from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from pathlib import Path

import psutil

from picrelay.observability import get_logger

log = get_logger("picrelay.process")

# Seconds between SIGTERM and SIGKILL when terminating a timed-out child.
TERMINATE_GRACE = 1.0

_POSIX = os.name == "posix"


@dataclass
class ProcessOutput:
    """Captured result of a finished (or killed) child process."""

    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def combined(self) -> str:
        return f"{self.stdout}\n{self.stderr}" if self.stderr else self.stdout


async def run_exec(args: list[str], timeout: float) -> ProcessOutput:
    """Run *args* without a shell and capture its output.

    Raises
    ------
    OSError
        If the executable cannot be started (``FileNotFoundError``,
        ``PermissionError``...).
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=_POSIX,
    )
    return await communicate(process, timeout)


async def run_shell(command: str, timeout: float) -> ProcessOutput:
    """Run *command* through the platform shell and capture its output."""
    process = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=_POSIX,
    )
    return await communicate(process, timeout)


async def communicate(process: asyncio.subprocess.Process, timeout: float) -> ProcessOutput:
    """Wait for *process* under *timeout*, terminating it on expiry."""
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await terminate(process)
        return ProcessOutput(
            returncode=process.returncode,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )
    return ProcessOutput(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
    )


async def terminate(process: asyncio.subprocess.Process, grace: float = TERMINATE_GRACE) -> None:
    """Terminate *process* and its process group, then reap it.

    Sends SIGTERM, waits up to *grace* seconds, then SIGKILL.
    """
    if process.returncode is not None:
        return
    _signal(process, signal.SIGTERM if _POSIX else None)
    try:
        await asyncio.wait_for(process.wait(), timeout=grace)
        return
    except asyncio.TimeoutError:
        pass
    _signal(process, signal.SIGKILL if _POSIX else None, force=True)
    await process.wait()
    log.debug(
        "Child process killed",
        extra={"extra_fields": {"op": "terminate", "pid": process.pid}},
    )


def _signal(process: asyncio.subprocess.Process, sig: int | None, force: bool = False) -> None:
    try:
        if _POSIX and sig is not None:
            os.killpg(process.pid, sig)
        elif force:
            process.kill()
        else:
            process.terminate()
    except (ProcessLookupError, PermissionError):
        # Already gone, or the group leader exited and the group is empty.
        pass


def is_process_running(name: str) -> bool:
    """Whether a process whose name (or executable) matches *name* runs.

    Matching is case-insensitive and tolerates a ``.exe`` suffix.
    """
    target = name.lower()
    targets = {target, f"{target}.exe"}
    try:
        for proc in psutil.process_iter(["name", "exe"]):
            info = proc.info
            pname = (info.get("name") or "").lower()
            if pname in targets:
                return True
            exe = info.get("exe") or ""
            if exe and Path(exe).name.lower() in targets:
                return True
    except psutil.Error as exc:
        log.debug(
            "Process listing failed",
            extra={"extra_fields": {"op": "process_check", "error": str(exc)}},
        )
    return False
