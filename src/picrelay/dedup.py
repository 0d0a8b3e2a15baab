"""In-flight deduplication of asset relays.

A host may deliver the same paste or drop more than once (bubbling and
capture-phase listeners both firing, for example).  :class:`TaskDeduplicator`
lets exactly one relay per :class:`~picrelay.models.Fingerprint` run at a
time; later arrivals are skipped, not failed.

The fingerprint is deliberately coarse: ``(name, size, last_modified)``.
Two distinct captures that agree on all three collide and the second is
dropped while the first is in flight.
"""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path

from picrelay.models import AssetSource, Fingerprint, InMemoryAsset, OnDiskAsset


def fingerprint_of(source: AssetSource, vault_root: str | None = None) -> Fingerprint:
    """Compute the deduplication key for *source*.

    In-memory assets use the host-reported modification time, falling
    back to the capture time in epoch milliseconds.  On-disk assets use
    ``stat``; a missing file yields size ``-1`` and mtime ``0`` so the
    relay can still be attempted and fail with a proper error.
    """
    if isinstance(source, InMemoryAsset):
        modified = source.last_modified
        if modified is None:
            modified = int(time.time() * 1000)
        return Fingerprint(name=source.name, size=len(source.data), last_modified=modified)

    if isinstance(source, OnDiskAsset):
        path = resolve_source_path(source, vault_root)
        try:
            st = path.stat()
        except OSError:
            return Fingerprint(name=path.name, size=-1, last_modified=0)
        return Fingerprint(
            name=path.name,
            size=st.st_size,
            last_modified=int(st.st_mtime * 1000),
        )

    raise TypeError(f"Unsupported asset source: {type(source).__name__}")


def resolve_source_path(source: OnDiskAsset, vault_root: str | None = None) -> Path:
    """Resolve an on-disk asset's path, relative to *vault_root* if set."""
    path = Path(os.path.expanduser(source.path))
    if not path.is_absolute() and vault_root:
        path = Path(vault_root) / path
    return path


class TaskDeduplicator:
    """Thread-safe set of in-flight fingerprints.

    ``try_begin`` must be paired with exactly one ``end`` in a
    ``finally`` block::

        if not dedup.try_begin(fp):
            return  # already in flight
        try:
            ...
        finally:
            dedup.end(fp)
    """

    def __init__(self) -> None:
        self._in_flight: set[Fingerprint] = set()
        self._lock = threading.Lock()

    def try_begin(self, fingerprint: Fingerprint) -> bool:
        """Claim *fingerprint*.  Returns ``False`` if it is already claimed."""
        with self._lock:
            if fingerprint in self._in_flight:
                return False
            self._in_flight.add(fingerprint)
            return True

    def end(self, fingerprint: Fingerprint) -> None:
        """Release *fingerprint*.  Releasing an unclaimed key is a no-op."""
        with self._lock:
            self._in_flight.discard(fingerprint)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._in_flight

    def __len__(self) -> int:
        with self._lock:
            return len(self._in_flight)
