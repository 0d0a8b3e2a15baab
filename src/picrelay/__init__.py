"""picrelay: relay local images through an external uploader CLI.

Public re-exports
-----------------

* **Orchestration:** :class:`RelayOrchestrator`, :class:`RelayNotifier`
* **Components:** :class:`ToolLocator`, :class:`ToolAvailabilityService`,
  :class:`StagingManager`, :class:`UploadInvoker`,
  :class:`TaskDeduplicator`, :class:`DocumentPatcher`
* **Editor:** :class:`EditorHandle`, :class:`TextBuffer`
* **Configuration:** :class:`RelayConfig`
* **Errors:** Every :class:`PicrelayError` subclass and :class:`ErrorCode`
* **Models:** All result dataclasses, enums, and supporting types

Usage::

    from picrelay import InMemoryAsset, RelayConfig, RelayOrchestrator, TextBuffer

    relay = RelayOrchestrator(RelayConfig())
    editor = TextBuffer()
    result = await relay.relay(InMemoryAsset(data, "shot.png"), editor)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from picrelay.config import (
    DEFAULT_SUPPORTED_FORMATS,
    SUPPORTED_IMAGE_MIMES,
    RelayConfig,
)

# ── Components ─────────────────────────────────────────────────────────
from picrelay.dedup import TaskDeduplicator, fingerprint_of
from picrelay.document import DocumentPatcher, EditorHandle, TextBuffer

# ── Errors ──────────────────────────────────────────────────────────────
from picrelay.errors import (
    ErrorCode,
    PicrelayAssetError,
    PicrelayError,
    PicrelayNoMatchingReferenceError,
    PicrelayStagingError,
    PicrelayTimeoutError,
    PicrelayToolCrashError,
    PicrelayToolNotFoundError,
    PicrelayUnparsableOutputError,
)

# ── Models ──────────────────────────────────────────────────────────────
from picrelay.models import (
    AssetSource,
    AssetTask,
    AvailabilityResult,
    AvailabilityStatus,
    DiagnosticReport,
    FailureNotice,
    Fingerprint,
    ImageReference,
    InMemoryAsset,
    OnDiskAsset,
    ReferenceTarget,
    RelayOutcome,
    RelayResult,
    RelayState,
    RelayWarning,
    TaskState,
    ToolCandidate,
    ToolTestDetails,
    ToolTestResult,
)

# ── Orchestration ──────────────────────────────────────────────────────
from picrelay.orchestrator import NoopNotifier, RelayNotifier, RelayOrchestrator
from picrelay.staging import StagingManager
from picrelay.tool import AvailabilityCache, ToolAvailabilityService, ToolLocator
from picrelay.upload import UploadInvoker

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Orchestration
    "RelayOrchestrator",
    "RelayNotifier",
    "NoopNotifier",
    # Components
    "ToolLocator",
    "ToolAvailabilityService",
    "AvailabilityCache",
    "StagingManager",
    "UploadInvoker",
    "TaskDeduplicator",
    "fingerprint_of",
    "DocumentPatcher",
    # Editor
    "EditorHandle",
    "TextBuffer",
    # Configuration
    "RelayConfig",
    "DEFAULT_SUPPORTED_FORMATS",
    "SUPPORTED_IMAGE_MIMES",
    # Error base + code enum
    "PicrelayError",
    "ErrorCode",
    # Tool errors
    "PicrelayToolNotFoundError",
    "PicrelayTimeoutError",
    "PicrelayUnparsableOutputError",
    "PicrelayToolCrashError",
    # Document errors
    "PicrelayNoMatchingReferenceError",
    # Staging / asset errors
    "PicrelayStagingError",
    "PicrelayAssetError",
    # Models: assets and tasks
    "AssetSource",
    "InMemoryAsset",
    "OnDiskAsset",
    "AssetTask",
    "Fingerprint",
    # Models: results
    "RelayResult",
    "RelayWarning",
    "FailureNotice",
    "AvailabilityResult",
    "ToolTestResult",
    "ToolTestDetails",
    "DiagnosticReport",
    "ToolCandidate",
    "ImageReference",
    # Models: enums
    "RelayOutcome",
    "RelayState",
    "TaskState",
    "AvailabilityStatus",
    "ReferenceTarget",
]
