"""Tests for the picrelay error hierarchy."""

from __future__ import annotations

import pytest

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
from picrelay.models import AvailabilityStatus, DiagnosticReport

_CASES = [
    (PicrelayToolNotFoundError, ErrorCode.NOT_FOUND),
    (PicrelayTimeoutError, ErrorCode.TIMEOUT),
    (PicrelayUnparsableOutputError, ErrorCode.UNPARSABLE_OUTPUT),
    (PicrelayToolCrashError, ErrorCode.TOOL_CRASH),
    (PicrelayNoMatchingReferenceError, ErrorCode.NO_MATCHING_REFERENCE),
    (PicrelayStagingError, ErrorCode.STAGING_IO_ERROR),
    (PicrelayAssetError, ErrorCode.UNSUPPORTED_ASSET),
]


class TestErrorCodes:
    @pytest.mark.parametrize("cls, code", _CASES)
    def test_subclass_sets_code(self, cls, code):
        exc = cls(message="boom")
        assert isinstance(exc, PicrelayError)
        assert exc.code == code
        assert exc.message == "boom"
        assert str(exc) == "boom"
        assert exc.context == {}

    def test_codes_compare_as_strings(self):
        assert ErrorCode.TIMEOUT == "TIMEOUT"


class TestContextAndCause:
    def test_cause_is_chained(self):
        original = OSError("disk full")
        exc = PicrelayStagingError(message="write failed", cause=original)
        assert exc.cause is original
        assert exc.__cause__ is original

    def test_repr_includes_context(self):
        exc = PicrelayTimeoutError(message="slow", context={"timeout_seconds": 3})
        assert "timeout_seconds" in repr(exc)
        assert "PicrelayTimeoutError" in repr(exc)

    def test_not_found_exposes_report(self):
        report = DiagnosticReport(status=AvailabilityStatus.NOT_FOUND)
        exc = PicrelayToolNotFoundError(message="missing", context={"report": report})
        assert exc.report is report

    def test_not_found_without_report(self):
        assert PicrelayToolNotFoundError(message="missing").report is None
