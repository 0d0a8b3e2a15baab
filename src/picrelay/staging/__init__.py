"""Staging of in-memory assets to tool-accessible files.

Exports
-------
StagingManager
    Write bytes to a uniquely named temp file and remove it again.
validate_asset
    Check an asset's format and size against the configuration.
normalize_asset_name
    Derive a safe staging file name, adding a missing extension.
sniff_mime / mime_to_extension
    Magic-byte MIME detection and MIME-to-extension mapping.
"""

from .manager import StagingManager
from .validate import (
    is_supported,
    mime_to_extension,
    normalize_asset_name,
    sniff_mime,
    validate_asset,
)

__all__ = [
    "StagingManager",
    "is_supported",
    "mime_to_extension",
    "normalize_asset_name",
    "sniff_mime",
    "validate_asset",
]
