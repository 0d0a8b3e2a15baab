"""Asset validation: format and size checks.

Validates that an asset's extension is in the configured
``supported_formats`` and that it does not exceed
``max_file_size_bytes`` before anything is written or uploaded.
Clipboard captures often arrive without an extension; for those the
MIME type is sniffed from the leading bytes and an extension derived.
"""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

from picrelay.config import RelayConfig
from picrelay.errors import PicrelayAssetError

# Map of magic bytes to MIME types for sniffing.
_MAGIC_BYTES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),  # RIFF....WEBP (check further)
    (b"<svg", "image/svg+xml"),
    (b"<?xml", "image/svg+xml"),
    (b"BM", "image/bmp"),
]

_MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}

DEFAULT_ASSET_NAME = "image"


def sniff_mime(data: bytes) -> str | None:
    """Attempt to detect the MIME type from the first bytes of *data*."""
    for magic, mime in _MAGIC_BYTES:
        if data[:len(magic)] == magic:
            if magic == b"RIFF" and (len(data) < 12 or data[8:12] != b"WEBP"):
                continue
            return mime
    return None


def mime_to_extension(mime_type: str | None) -> str:
    """Map a MIME type to a file extension, ``".png"`` when unknown."""
    if not mime_type:
        return ".png"
    ext = _MIME_EXTENSIONS.get(mime_type.lower())
    if ext:
        return ext
    return mimetypes.guess_extension(mime_type) or ".png"


def normalize_asset_name(name: str, data: bytes | None = None, mime_type: str | None = None) -> str:
    """Return a safe file name for staging.

    Directory components are stripped, an empty name becomes
    ``"image"``, and a missing extension is derived from the sniffed
    MIME type, then from *mime_type*.
    """
    base = PurePath(name.replace("\\", "/")).name.strip() if name else ""
    if base in ("", ".", ".."):
        base = DEFAULT_ASSET_NAME
    if PurePath(base).suffix:
        return base
    sniffed = sniff_mime(data) if data else None
    return base + mime_to_extension(sniffed or mime_type)


def extension_of(name: str) -> str:
    """Lower-case extension of *name* without the dot."""
    return PurePath(name).suffix.lower().lstrip(".")


def is_supported(name: str, config: RelayConfig) -> bool:
    """Whether *name* has one of the configured supported extensions."""
    return extension_of(name) in config.supported_formats


def validate_asset(name: str, size_bytes: int, config: RelayConfig) -> None:
    """Validate an asset's format and size.

    Raises
    ------
    PicrelayAssetError
        If the extension is not in ``config.supported_formats`` or the
        asset is larger than ``config.max_file_size_bytes``.
    """
    ext = extension_of(name)
    if ext not in config.supported_formats:
        raise PicrelayAssetError(
            message=(
                f"Unsupported image format {ext or '(none)'!r} for {name}; "
                f"supported: {', '.join(config.supported_formats)}"
            ),
            context={
                "name": name,
                "extension": ext,
                "supported_formats": list(config.supported_formats),
            },
        )
    if size_bytes > config.max_file_size_bytes:
        raise PicrelayAssetError(
            message=(
                f"{name} is {size_bytes} bytes, above the "
                f"{config.max_file_size_bytes}-byte limit"
            ),
            context={
                "name": name,
                "size_bytes": size_bytes,
                "max_bytes": config.max_file_size_bytes,
            },
        )
