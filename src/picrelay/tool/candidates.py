"""Candidate generation for uploader discovery.

Sources, in the order the locator consults them:

1. the user-configured path (``~`` and ``$VARS`` expanded);
2. well-known installation locations for the current platform;
3. OS command resolution (``which`` and friends);
4. a scan of every directory on ``PATH``.
"""

from __future__ import annotations

import os
import re
import shlex
import sys

# App-bundle spelling of known tools, keyed by lower-case tool name.
_APP_NAMES: dict[str, str] = {
    "upic": "uPic",
}

_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


def expand_path(path: str) -> str:
    """Expand ``~`` and environment variables in *path* and strip it."""
    return os.path.expanduser(os.path.expandvars(path.strip()))


def is_bare_command(path: str) -> bool:
    """A candidate without any directory separator is looked up on PATH."""
    return "/" not in path and os.sep not in path and not (os.altsep and os.altsep in path)


def well_known_paths(tool_name: str, platform: str | None = None) -> list[str]:
    """Return the usual install locations of *tool_name*, most likely first.

    Paths are returned unexpanded; pass them through :func:`expand_path`.
    """
    platform = platform or sys.platform
    app = _APP_NAMES.get(tool_name.lower(), tool_name)
    if platform == "darwin":
        return [
            f"/Applications/{app}.app/Contents/MacOS/{app}",
            f"/Applications/{app}.app/Contents/Resources/{app}",
            f"/System/Applications/{app}.app/Contents/MacOS/{app}",
            f"/usr/local/bin/{tool_name}",
            f"/opt/homebrew/bin/{tool_name}",
            f"/usr/bin/{tool_name}",
            f"/opt/local/bin/{tool_name}",
            f"~/Applications/{app}.app/Contents/MacOS/{app}",
            f"~/.local/bin/{tool_name}",
        ]
    if platform.startswith("win"):
        return [
            f"%LOCALAPPDATA%\\Programs\\{app}\\{app}.exe",
            f"%PROGRAMFILES%\\{app}\\{app}.exe",
            f"%PROGRAMFILES(X86)%\\{app}\\{app}.exe",
        ]
    return [
        f"/usr/local/bin/{tool_name}",
        f"/usr/bin/{tool_name}",
        f"~/.local/bin/{tool_name}",
        f"/snap/bin/{tool_name}",
        f"/opt/{app}/{tool_name}",
    ]


def lookup_commands(tool_name: str, platform: str | None = None) -> list[str]:
    """Shell commands that resolve *tool_name* to a path, in order."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return [f"where {tool_name}"]
    quoted = shlex.quote(tool_name)
    return [f"which {quoted}", f"whereis {quoted}", f"type -p {quoted}"]


def parse_lookup_output(output: str, tool_name: str) -> str | None:
    """Extract the first resolved path from ``which``-style output.

    Handles ``which`` (bare path), ``whereis`` (``name: path ...``) and
    ``type`` (``name is path``) formats.  Returns ``None`` for empty or
    "not found" output.
    """
    for line in output.splitlines():
        line = line.strip()
        if not line or "not found" in line.lower():
            continue
        whereis_prefix = f"{tool_name}:"
        if line.startswith(whereis_prefix):
            # whereis lists several space separated paths.
            for token in line[len(whereis_prefix):].split():
                if _looks_like_path(token):
                    return token
            continue
        type_prefix = f"{tool_name} is "
        if line.startswith(type_prefix):
            line = line[len(type_prefix):].strip()
        if _looks_like_path(line):
            return line
    return None


def _looks_like_path(value: str) -> bool:
    return value.startswith(("/", "~", "\\")) or bool(_DRIVE_RE.match(value))


def path_scan_candidates(
    tool_name: str,
    path_env: str | None = None,
    platform: str | None = None,
) -> list[str]:
    """Return ``<dir>/<tool_name>`` for every directory on PATH."""
    platform = platform or sys.platform
    raw = os.environ.get("PATH", "") if path_env is None else path_env
    names = [tool_name]
    if platform.startswith("win") and not tool_name.lower().endswith(".exe"):
        names.append(f"{tool_name}.exe")
    result: list[str] = []
    for directory in raw.split(os.pathsep):
        directory = directory.strip()
        if not directory:
            continue
        for name in names:
            result.append(os.path.join(directory, name))
    return result
