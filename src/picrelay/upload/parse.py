"""Parsing and classification of uploader output.

The uploader prints free-form text.  A URL is taken from the first line
that starts with an ``http(s)`` scheme; failing that, the first URL
embedded anywhere in the output is used.
"""

from __future__ import annotations

import re

from picrelay.errors import ErrorCode

# A URL needs at least one host character after the scheme.
_HOST_START = r"[^\s\"'<>/?#.,;:)\]}]"
_URL_LINE_RE = re.compile(rf"^https?://{_HOST_START}", re.IGNORECASE)
_EMBEDDED_URL_RE = re.compile(rf"https?://{_HOST_START}[^\s\"'<>]*", re.IGNORECASE)

# Trailing characters that are punctuation around a URL, not part of it.
_TRAILING_PUNCT = ".,;:)]}"

_NOT_FOUND_MARKERS = (
    "enoent",
    "no such file or directory",
    "command not found",
    "not recognized as an internal or external command",
    "cannot find",
)
_TIMEOUT_MARKERS = ("timeout", "timed out")


def parse_upload_output(stdout: str, stderr: str = "") -> str | None:
    """Extract the remote URL from uploader output, or ``None``.

    Parameters
    ----------
    stdout:
        Standard output of the uploader.  Scanned line by line first.
    stderr:
        Standard error.  Only consulted by the embedded-URL fallback.
    """
    for line in stdout.splitlines():
        line = line.strip()
        if _URL_LINE_RE.match(line):
            return line.split()[0]

    match = _EMBEDDED_URL_RE.search(f"{stdout}\n{stderr}")
    if match is None:
        return None
    return match.group(0).rstrip(_TRAILING_PUNCT)


def classify_failure(message: str, exit_code: int | None = None) -> ErrorCode:
    """Map a failed invocation to an :class:`ErrorCode`.

    Exit code ``127`` (shell: command not found) and ENOENT-style text
    mean the tool could not be started; timeout vocabulary means the
    tool gave up on its own; anything else is a crash.
    """
    if exit_code == 127:
        return ErrorCode.NOT_FOUND
    text = message.lower()
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return ErrorCode.NOT_FOUND
    if any(marker in text for marker in _TIMEOUT_MARKERS):
        return ErrorCode.TIMEOUT
    return ErrorCode.TOOL_CRASH
