"""Relay configuration for picrelay.

:class:`RelayConfig` is a plain dataclass that captures every tuneable
knob of the relay core.  A single instance is shared by the locator,
stager, invoker and orchestrator; swapping it through
:meth:`RelayOrchestrator.update_config` invalidates the tool cache.

Two module-level constants define the defaults for asset filtering:

* :data:`DEFAULT_SUPPORTED_FORMATS`: file extensions accepted for relay.
* :data:`SUPPORTED_IMAGE_MIMES`: MIME types a host should capture on
  paste / drop.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Asset filter constants
# ---------------------------------------------------------------------------

DEFAULT_SUPPORTED_FORMATS: list[str] = [
    "png",
    "jpg",
    "jpeg",
    "gif",
    "bmp",
    "webp",
    "svg",
]
"""File extensions (without the dot) accepted for relay."""

SUPPORTED_IMAGE_MIMES: list[str] = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "image/bmp",
    "image/webp",
    "image/svg+xml",
]
"""MIME types a host collaborator should intercept on paste / drop."""

MAX_PROBE_TIMEOUT = 5.0


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class RelayConfig:
    """Complete configuration for the relay core.

    Every parameter has a default, so ``RelayConfig()`` is a working
    configuration that auto-discovers the uploader.

    Parameters
    ----------
    tool_path:
        User-configured path (or command) of the external uploader.
        ``~`` and environment variables are expanded at use time.  Empty
        means auto-discovery.
    tool_name:
        Executable and process name of the uploader, used for PATH scans,
        ``which``-style lookups and running-process detection.
    auto_upload:
        Whether the host should relay paste / drop events automatically.
    delete_local_file:
        After a successful relay of an on-disk asset whose reference was
        patched, delete the source file.  Only files inside
        *vault_root* are ever deleted.
    vault_root:
        Root of the host's storage tree.  Relative on-disk references are
        resolved against it.
    upload_timeout:
        Seconds an upload invocation may run before it is killed.
    probe_timeout:
        Seconds a single ``--help`` / ``--version`` probe may run.
        Capped at 5 seconds.
    positive_cache_ttl:
        Seconds a candidate verified as working stays trusted.
    negative_cache_ttl:
        Seconds a failed candidate stays rejected before it is re-probed.
    check_interval:
        Period of the background availability check.
    check_throttle:
        Minimum spacing between two availability evaluations; calls inside
        the window reuse the previous answer.
    show_notifications:
        Forward progress / success notifications to the host notifier.
        Failures are always forwarded.
    supported_formats:
        Accepted file extensions (without the dot, case-insensitive).
    max_file_size_bytes:
        Largest asset the relay accepts.  Default is 50 MiB.
    max_concurrent:
        Upper bound on simultaneous relays in
        :meth:`RelayOrchestrator.relay_many`.
    staging_dir:
        Directory for staged copies.  Defaults to the platform temp dir.
    verify_remote_url:
        Issue a ``HEAD`` request against the returned URL.  An unreachable
        URL produces a warning on the result, never a failure.
    """

    # ── Tool ────────────────────────────────────────────────────────────
    tool_path: str = ""

    tool_name: str = "upic"

    # ── Behaviour ───────────────────────────────────────────────────────
    auto_upload: bool = True

    delete_local_file: bool = False

    vault_root: str | None = None

    show_notifications: bool = True

    # ── Timing ──────────────────────────────────────────────────────────
    upload_timeout: float = 30.0

    probe_timeout: float = MAX_PROBE_TIMEOUT

    positive_cache_ttl: float = 30 * 60.0

    negative_cache_ttl: float = 30.0

    check_interval: float = 30.0

    check_throttle: float = 5.0

    # ── Assets ──────────────────────────────────────────────────────────
    supported_formats: list[str] = field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_FORMATS),
    )

    max_file_size_bytes: int = 50 * 1024 * 1024  # 50 MiB

    max_concurrent: int = 4

    staging_dir: str | None = None

    verify_remote_url: bool = False

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.tool_name or not self.tool_name.strip():
            raise ValueError("tool_name must be a non-empty string")
        if self.upload_timeout <= 0:
            raise ValueError(f"upload_timeout must be > 0, got {self.upload_timeout}")
        if not 0 < self.probe_timeout <= MAX_PROBE_TIMEOUT:
            raise ValueError(
                f"probe_timeout must be in (0, {MAX_PROBE_TIMEOUT}], got {self.probe_timeout}"
            )
        if self.negative_cache_ttl < 0:
            raise ValueError(f"negative_cache_ttl must be >= 0, got {self.negative_cache_ttl}")
        if self.positive_cache_ttl < self.negative_cache_ttl:
            raise ValueError(
                "positive_cache_ttl must be >= negative_cache_ttl, got "
                f"{self.positive_cache_ttl} < {self.negative_cache_ttl}"
            )
        if self.check_interval <= 0:
            raise ValueError(f"check_interval must be > 0, got {self.check_interval}")
        if self.check_throttle < 0:
            raise ValueError(f"check_throttle must be >= 0, got {self.check_throttle}")
        if self.max_file_size_bytes <= 0:
            raise ValueError(f"max_file_size_bytes must be > 0, got {self.max_file_size_bytes}")
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")

        # Normalise formats once so lookups can be plain membership tests.
        formats = [
            fmt.strip().lower().lstrip(".")
            for fmt in self.supported_formats
            if isinstance(fmt, str) and fmt.strip()
        ]
        if not formats:
            raise ValueError("supported_formats must contain at least one extension")
        self.supported_formats = formats

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, **overrides: Any) -> RelayConfig:
        """Build a config from a persisted settings mapping.

        Known keys in *data* override the defaults; unknown keys are
        ignored so that settings written by newer versions still load.
        *overrides* win over both.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        values: dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key in known:
                values[key] = value
        values.update(overrides)
        return cls(**values)

    def to_mapping(self) -> dict[str, Any]:
        """Return the persistable settings (everything except *metrics*)."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if f.name != "metrics"
        }

    def is_configured(self) -> bool:
        """Whether the user has pointed the relay at a specific uploader."""
        return bool(self.tool_path and self.tool_path.strip())
