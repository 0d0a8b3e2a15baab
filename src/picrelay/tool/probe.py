"""Verification of a single uploader candidate.

A candidate is probed with side-effect-free flags (``--help``,
``--version``...) and its combined output is searched for vocabulary
that identifies the tool.  Many CLIs exit non-zero when called without
mandatory arguments, so a non-zero exit is still accepted when its
output reads like the tool's own usage error.
"""

from __future__ import annotations

import os
import shutil
import sys

from picrelay.observability import get_logger
from picrelay.process import run_exec

from .candidates import is_bare_command

log = get_logger("picrelay.tool.probe")

PROBE_FLAGS: tuple[str, ...] = ("--help", "--version", "-h", "-v")

# Accepted in the output of a probe that exited 0.
SUCCESS_KEYWORDS: tuple[str, ...] = (
    "upload", "image", "picture", "photo",
    "usage:", "options:", "commands:", "help:",
    "version", "copyright", "author",
)

# Accepted in the output of a probe that exited non-zero.
ERROR_KEYWORDS: tuple[str, ...] = (
    "upload",
    "missing required option",
    "usage",
    "help",
)


def inspect_path(path: str) -> tuple[bool, bool]:
    """Return ``(exists, executable)`` for a candidate without spawning.

    Bare commands are resolved through :func:`shutil.which`.  On Windows
    any existing regular file counts as executable.
    """
    if is_bare_command(path):
        resolved = shutil.which(path)
        return (resolved is not None, resolved is not None)
    if not os.path.exists(path):
        return (False, False)
    if not os.path.isfile(path):
        return (True, False)
    if sys.platform.startswith("win"):
        return (True, True)
    return (True, os.access(path, os.X_OK))


def output_identifies_tool(output: str, tool_name: str, exited_ok: bool) -> bool:
    """Whether probe *output* proves the candidate is the expected tool."""
    text = output.lower()
    keywords = SUCCESS_KEYWORDS if exited_ok else ERROR_KEYWORDS
    return tool_name.lower() in text or any(keyword in text for keyword in keywords)


async def probe_candidate(
    path: str,
    tool_name: str,
    timeout: float,
    flags: tuple[str, ...] = PROBE_FLAGS,
) -> bool:
    """Run *path* with each of *flags* until one proves it is the tool.

    Returns ``False`` as soon as the executable cannot be started at
    all; a timed-out probe is terminated and the next flag is tried.
    """
    for flag in flags:
        try:
            result = await run_exec([path, flag], timeout=timeout)
        except OSError as exc:
            log.debug(
                "Probe could not start candidate",
                extra={"extra_fields": {"op": "probe", "path": path, "error": str(exc)}},
            )
            return False

        if result.timed_out:
            log.debug(
                "Probe timed out",
                extra={"extra_fields": {"op": "probe", "path": path, "flag": flag}},
            )
            continue

        exited_ok = result.returncode == 0
        if output_identifies_tool(result.combined, tool_name, exited_ok):
            log.debug(
                "Probe identified tool",
                extra={
                    "extra_fields": {
                        "op": "probe",
                        "path": path,
                        "flag": flag,
                        "exit_code": result.returncode,
                    }
                },
            )
            return True
    return False
