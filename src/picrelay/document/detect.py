"""Image reference target detection.

Classifies the target of ``![alt](target)`` (or the name inside a
``![[embed]]``) so the relay knows whether it still points at a local
file.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from urllib.parse import unquote, urlparse

from picrelay.models import ReferenceTarget

_DATA_URI_RE = re.compile(r"^data:", re.IGNORECASE)

# Windows drive paths parse as a one-letter URL scheme.
_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")

_IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    ".bmp", ".tiff", ".tif", ".ico", ".avif",
})


def classify_target(target: str) -> ReferenceTarget:
    """Classify an image reference target.

    Parameters
    ----------
    target:
        The raw target string.

    Returns
    -------
    ReferenceTarget
    """
    if not target or not target.strip():
        return ReferenceTarget.UNKNOWN

    target = target.strip()

    if _DATA_URI_RE.match(target):
        return ReferenceTarget.DATA_URI

    if _DRIVE_RE.match(target):
        return ReferenceTarget.LOCAL_FILE

    parsed = urlparse(target)
    if parsed.scheme in ("http", "https"):
        return ReferenceTarget.REMOTE_URL
    if parsed.scheme == "file":
        return ReferenceTarget.LOCAL_FILE
    if parsed.scheme:
        return ReferenceTarget.UNKNOWN

    if target.startswith(("/", "./", "../", "~")):
        return ReferenceTarget.LOCAL_FILE

    if PurePath(unquote(target)).suffix.lower() in _IMAGE_EXTENSIONS:
        return ReferenceTarget.LOCAL_FILE

    return ReferenceTarget.UNKNOWN


def is_local_target(target: str) -> bool:
    return classify_target(target) == ReferenceTarget.LOCAL_FILE


def local_path_of(target: str) -> str:
    """Turn a local reference target into a filesystem path string.

    Strips a ``file://`` scheme and percent-decoding; other targets are
    returned unquoted.
    """
    target = target.strip()
    parsed = urlparse(target)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return unquote(target)
