"""Public data models for picrelay.

This module contains every result type, report type, enum, and
supporting dataclass referenced by the public API surface.  Behaviour is
limited to small derived properties and rendering helpers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from picrelay.errors import ErrorCode

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskState(str, Enum):
    """Lifecycle states of a single :class:`AssetTask`."""

    PENDING = "pending"
    """Captured from the host; nothing written yet."""

    STAGED = "staged"
    """The asset bytes have been written to a staging file."""

    UPLOADING = "uploading"
    """The external uploader is running against the asset."""

    SUCCEEDED = "succeeded"
    """The uploader returned a URL."""

    FAILED = "failed"
    """Staging, discovery, or upload failed."""

    CLEANED = "cleaned"
    """The staging file (if any) has been removed.  Terminal."""


class RelayState(str, Enum):
    """Phases of the orchestrator state machine."""

    IDLE = "idle"
    DEDUPLICATING = "deduplicating"
    STAGING = "staging"
    RESOLVING = "resolving"
    UPLOADING = "uploading"
    PATCHING = "patching"
    CLEANUP = "cleanup"
    DONE = "done"


class RelayOutcome(str, Enum):
    """Terminal outcome reported back to the host."""

    SUCCEEDED = "succeeded"
    """The upload produced a URL.  Check ``patched`` for the document."""

    FAILED = "failed"
    """The relay ended with an :class:`ErrorCode`; the placeholder is kept."""

    SKIPPED = "skipped"
    """A relay for the same fingerprint was already in flight."""


class AvailabilityStatus(str, Enum):
    """Overall verdict of a :class:`DiagnosticReport`."""

    AVAILABLE = "available"
    NOT_FOUND = "not_found"
    NOT_EXECUTABLE = "not_executable"
    CONFIGURATION_ERROR = "configuration_error"


class ReferenceTarget(str, Enum):
    """Classification of the target of a Markdown image reference."""

    REMOTE_URL = "remote_url"
    """``http://`` or ``https://``, already relayed."""

    LOCAL_FILE = "local_file"
    """A path on the local filesystem or inside the host storage tree."""

    DATA_URI = "data_uri"
    """An inline ``data:`` URI."""

    UNKNOWN = "unknown"
    """The target could not be classified."""


# ---------------------------------------------------------------------------
# Asset sources (decided once by the host at capture time)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InMemoryAsset:
    """An asset that only exists as bytes, e.g. a clipboard capture.

    Attributes
    ----------
    data:
        Raw asset bytes.
    name:
        Suggested file name.  May lack an extension.
    mime_type:
        MIME type reported by the host, if any.
    last_modified:
        Host-reported modification time in epoch milliseconds.  ``None``
        means "now".
    """

    data: bytes
    name: str
    mime_type: str | None = None
    last_modified: int | None = None

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True)
class OnDiskAsset:
    """An asset already resident in the user's storage tree.

    Attributes
    ----------
    path:
        Location of the file.  Relative paths are resolved against the
        configured ``vault_root``.
    display_name:
        Name used as alt text in the rewritten reference.  Defaults to
        the file name.
    """

    path: str
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", Path(self.path).name)


AssetSource = Union[InMemoryAsset, OnDiskAsset]


# ---------------------------------------------------------------------------
# Tasks and fingerprints
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fingerprint:
    """Coarse identity of one asset instance.

    Two captures with the same name, byte length and modification time
    are considered the same asset and deduplicated.
    """

    name: str
    size: int
    last_modified: int


@dataclass
class AssetTask:
    """One relay attempt.

    Attributes
    ----------
    fingerprint:
        Deduplication key.
    source:
        The asset being relayed.  Owned by the task until staged.
    staging_path:
        Set once staged; the task is responsible for deleting it.
    state:
        Current :class:`TaskState`.
    url:
        Remote URL once the upload succeeded.
    error_code:
        Failure classification once failed.
    """

    fingerprint: Fingerprint
    source: AssetSource
    staging_path: str | None = None
    state: TaskState = TaskState.PENDING
    url: str | None = None
    error_code: ErrorCode | None = None

    @property
    def display_name(self) -> str:
        return self.source.display_name


# ---------------------------------------------------------------------------
# Tool discovery
# ---------------------------------------------------------------------------

@dataclass
class ToolCandidate:
    """A path or command hypothesis for the external uploader.

    Attributes
    ----------
    path:
        The expanded path or bare command string.
    source:
        Where the candidate came from (``"config"``, ``"well_known"``,
        ``"lookup"``, ``"path_scan"``).
    exists:
        Whether the path exists on disk.  Bare commands report ``True``.
    executable:
        Whether the path is an executable regular file.
    verified:
        Whether the candidate tested positive.
    verified_at:
        Clock reading of the last check, positive or negative;
        ``None`` until the candidate has been tested.
    """

    path: str
    source: str = ""
    exists: bool = False
    executable: bool = False
    verified: bool = False
    verified_at: float | None = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "exists": self.exists,
            "executable": self.executable,
            "testPassed": self.verified,
        }


@dataclass
class DiagnosticReport:
    """Structured account of a discovery run, for operator-facing display.

    Attributes
    ----------
    status:
        Overall verdict.
    candidates_tried:
        Every candidate considered, in discovery order.
    suggestions:
        Human-readable next steps.
    detected_paths:
        Labelled hints gathered during diagnosis
        (``"Common path: /usr/bin/upic"``).
    system_info:
        Platform, architecture, home directory and PATH entries.
    """

    status: AvailabilityStatus
    candidates_tried: list[ToolCandidate] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    detected_paths: list[str] = field(default_factory=list)
    system_info: dict = field(default_factory=dict)

    @property
    def working_path(self) -> str | None:
        for candidate in self.candidates_tried:
            if candidate.verified:
                return candidate.path
        return None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "candidatesTried": [c.to_dict() for c in self.candidates_tried],
            "suggestions": list(self.suggestions),
        }

    def to_markdown(self) -> str:
        """Render the report as a Markdown document for the host to open."""
        lines = [
            "# Uploader diagnostic report",
            "",
            f"## Status: {self.status.value}",
            "",
        ]
        if self.system_info:
            lines.append("## System")
            lines.append(f"- Platform: {self.system_info.get('platform', '?')}")
            lines.append(f"- Architecture: {self.system_info.get('arch', '?')}")
            lines.append(f"- Home directory: {self.system_info.get('home_dir', '?')}")
            lines.append(f"- PATH entries: {len(self.system_info.get('path_env', []))}")
            lines.append("")
        if self.detected_paths:
            lines.append("## Detected paths")
            lines.extend(f"- {p}" for p in self.detected_paths)
            lines.append("")
        lines.append("## Candidates tried")
        if not self.candidates_tried:
            lines.append("- (none)")
        for c in self.candidates_tried:
            lines.append(
                f"- {c.path}: exists={c.exists}, executable={c.executable}, "
                f"test_passed={c.verified}"
            )
        lines.append("")
        lines.append("## Suggestions")
        lines.extend(f"- {s}" for s in self.suggestions)
        return "\n".join(lines) + "\n"


@dataclass
class AvailabilityResult:
    """Answer of :meth:`ToolLocator.check_availability`."""

    available: bool
    path: str | None = None
    message: str = ""
    checked_at: float = field(default_factory=time.monotonic)


@dataclass
class ToolTestDetails:
    """Per-step outcome of a detailed self test."""

    path_exists: bool
    is_executable: bool
    command_test: bool
    response_time_ms: float


@dataclass
class ToolTestResult:
    """Answer of :meth:`ToolLocator.self_test`."""

    success: bool
    message: str
    path: str | None = None
    details: ToolTestDetails | None = None


# ---------------------------------------------------------------------------
# Document references
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageReference:
    """An image reference found in document text.

    Attributes
    ----------
    alt:
        Alt text (``![alt](...)``) or the embed label.
    target:
        The path / URL the reference points at, as written.
    raw:
        The literal reference text, when known.
    embed:
        ``True`` for host embed syntax (``![[file.png]]``).
    """

    alt: str
    target: str
    raw: str = ""
    embed: bool = False


# ---------------------------------------------------------------------------
# Results and notifications
# ---------------------------------------------------------------------------

@dataclass
class RelayWarning:
    """A non-fatal issue attached to a relay result."""

    code: str
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class FailureNotice:
    """Structured failure notification delivered to the host.

    Attributes
    ----------
    kind:
        The error classification.
    message:
        Actionable, user-facing text.
    original_ref:
        The placeholder reference left in the document.
    """

    kind: ErrorCode
    message: str
    original_ref: str

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "originalRef": self.original_ref,
        }


@dataclass
class RelayResult:
    """Terminal state of one relay.

    Attributes
    ----------
    outcome:
        Success, failure, or duplicate skip.
    display_name:
        Name of the asset.
    original_ref:
        The local reference that was (or would have been) rewritten.
    url:
        Remote URL on success.
    patched:
        Whether the document reference was rewritten.  A successful
        upload with ``patched=False`` still counts as success.
    error_code:
        Classification of a failure.
    message:
        Human-readable detail for failures and unpatched successes.
    strategy:
        Name of the patch strategy that matched, if any.
    warnings:
        Non-fatal issues (e.g. remote URL not reachable).
    """

    outcome: RelayOutcome
    display_name: str
    original_ref: str = ""
    url: str | None = None
    patched: bool = False
    error_code: ErrorCode | None = None
    message: str = ""
    strategy: str | None = None
    warnings: list[RelayWarning] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome == RelayOutcome.SUCCEEDED
