"""Tests for fingerprinting and in-flight deduplication."""

from __future__ import annotations

import os
import threading

from hypothesis import given, settings
from hypothesis import strategies as st

from picrelay.dedup import TaskDeduplicator, fingerprint_of, resolve_source_path
from picrelay.models import Fingerprint, InMemoryAsset, OnDiskAsset

_fingerprints = st.builds(
    Fingerprint,
    name=st.text(min_size=1, max_size=20),
    size=st.integers(min_value=-1, max_value=10**9),
    last_modified=st.integers(min_value=0, max_value=2**42),
)

# =========================================================================
# Fingerprints
# =========================================================================


class TestFingerprintOf:
    def test_in_memory_uses_host_timestamp(self):
        fp = fingerprint_of(InMemoryAsset(data=b"abcd", name="a.png", last_modified=1234))
        assert fp == Fingerprint(name="a.png", size=4, last_modified=1234)

    def test_in_memory_without_timestamp_uses_now(self):
        fp = fingerprint_of(InMemoryAsset(data=b"abcd", name="a.png"))
        assert fp.last_modified > 0

    def test_same_capture_collides(self):
        a = InMemoryAsset(data=b"one", name="image.png", last_modified=5)
        b = InMemoryAsset(data=b"two", name="image.png", last_modified=5)
        # Same name, size and mtime: deliberately the same key.
        assert fingerprint_of(a) == fingerprint_of(b)

    def test_on_disk_uses_stat(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(b"x" * 10)
        os.utime(path, (1_700_000_000, 1_700_000_000))
        fp = fingerprint_of(OnDiskAsset(path=str(path)))
        assert fp == Fingerprint(name="photo.png", size=10, last_modified=1_700_000_000_000)

    def test_on_disk_missing_file(self, tmp_path):
        fp = fingerprint_of(OnDiskAsset(path=str(tmp_path / "gone.png")))
        assert fp == Fingerprint(name="gone.png", size=-1, last_modified=0)

    def test_relative_path_resolved_against_vault(self, tmp_path):
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "a.png").write_bytes(b"12")
        source = OnDiskAsset(path="assets/a.png")
        assert resolve_source_path(source, str(tmp_path)) == tmp_path / "assets" / "a.png"
        assert fingerprint_of(source, str(tmp_path)).size == 2


# =========================================================================
# Deduplicator
# =========================================================================


class TestTaskDeduplicator:
    def test_second_begin_is_rejected(self):
        dedup = TaskDeduplicator()
        fp = Fingerprint("a.png", 1, 1)
        assert dedup.try_begin(fp)
        assert not dedup.try_begin(fp)
        assert fp in dedup

    def test_end_releases(self):
        dedup = TaskDeduplicator()
        fp = Fingerprint("a.png", 1, 1)
        dedup.try_begin(fp)
        dedup.end(fp)
        assert fp not in dedup
        assert dedup.try_begin(fp)

    def test_end_without_begin_is_noop(self):
        dedup = TaskDeduplicator()
        dedup.end(Fingerprint("a.png", 1, 1))
        assert len(dedup) == 0

    def test_distinct_fingerprints_do_not_block(self):
        dedup = TaskDeduplicator()
        assert dedup.try_begin(Fingerprint("a.png", 1, 1))
        assert dedup.try_begin(Fingerprint("a.png", 1, 2))
        assert len(dedup) == 2

    def test_concurrent_threads_admit_exactly_one(self):
        dedup = TaskDeduplicator()
        fp = Fingerprint("a.png", 100, 42)
        barrier = threading.Barrier(16)
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            ok = dedup.try_begin(fp)
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1


class TestDeduplicatorProperties:
    @given(fp=_fingerprints, attempts=st.integers(min_value=1, max_value=20))
    @settings(max_examples=100)
    def test_exactly_one_begin_until_end(self, fp, attempts):
        dedup = TaskDeduplicator()
        admitted = [dedup.try_begin(fp) for _ in range(attempts)]
        assert admitted.count(True) == 1
        dedup.end(fp)
        assert dedup.try_begin(fp)

    @given(fps=st.lists(_fingerprints, max_size=20))
    @settings(max_examples=100)
    def test_in_flight_size_is_number_of_distinct_keys(self, fps):
        dedup = TaskDeduplicator()
        for fp in fps:
            dedup.try_begin(fp)
        assert len(dedup) == len(set(fps))
