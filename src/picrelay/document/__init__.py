"""Document side of a relay: editor abstraction, scanning and patching.

Exports
-------
DocumentPatcher
    Insert placeholders and rewrite them to remote URLs.
EditorHandle / TextBuffer
    Host editor protocol and an in-memory implementation.
find_image_references / find_local_images
    Markdown and host-embed image discovery (code regions skipped).
classify_target
    Classify a reference target as remote, local, data URI or unknown.
"""

from .detect import classify_target, is_local_target, local_path_of
from .editor import EditorHandle, TextBuffer
from .patcher import DocumentPatcher, format_reference
from .scan import find_image_references, find_local_images
from .strategies import DEFAULT_STRATEGIES, PatchRequest, PatchStrategy, apply_strategies

__all__ = [
    "DEFAULT_STRATEGIES",
    "DocumentPatcher",
    "EditorHandle",
    "PatchRequest",
    "PatchStrategy",
    "TextBuffer",
    "apply_strategies",
    "classify_target",
    "find_image_references",
    "find_local_images",
    "format_reference",
    "is_local_target",
    "local_path_of",
]
