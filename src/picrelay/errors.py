"""Full error hierarchy for picrelay.

Every public error class inherits from PicrelayError.  Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.
The relay orchestrator converts every :class:`PicrelayError` into a
failed :class:`~picrelay.models.RelayResult`; nothing in this hierarchy
is meant to reach the host uncaught.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every failure a relay can end in."""

    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    UNPARSABLE_OUTPUT = "UNPARSABLE_OUTPUT"
    TOOL_CRASH = "TOOL_CRASH"
    NO_MATCHING_REFERENCE = "NO_MATCHING_REFERENCE"
    STAGING_IO_ERROR = "STAGING_IO_ERROR"
    UNSUPPORTED_ASSET = "UNSUPPORTED_ASSET"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class PicrelayError(Exception):
    """Base exception for all picrelay errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A user-facing description of what went wrong.  Messages are
        written to be shown verbatim in a host notification.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Tool discovery / invocation errors
# ---------------------------------------------------------------------------

class PicrelayToolNotFoundError(PicrelayError):
    """No working uploader candidate was found, or the shell could not
    start the resolved one.

    Context keys: ``report`` (a :class:`~picrelay.models.DiagnosticReport`
    when raised by the locator), ``tool_path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )

    @property
    def report(self) -> Any:
        """The structured discovery report, if one was attached."""
        return self.context.get("report")


class PicrelayTimeoutError(PicrelayError):
    """The uploader did not finish within the configured bound.

    Context keys: ``tool_path``, ``file_path``, ``timeout_seconds``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TIMEOUT,
            message=message,
            context=context,
            cause=cause,
        )


class PicrelayUnparsableOutputError(PicrelayError):
    """The uploader ran but no URL could be extracted from its output.

    Raised even when the process exited ``0``.

    Context keys: ``exit_code``, ``stdout``, ``stderr``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNPARSABLE_OUTPUT,
            message=message,
            context=context,
            cause=cause,
        )


class PicrelayToolCrashError(PicrelayError):
    """The uploader exited non-zero with an unrecognised message.

    Context keys: ``exit_code``, ``stderr``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TOOL_CRASH,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Document errors
# ---------------------------------------------------------------------------

class PicrelayNoMatchingReferenceError(PicrelayError):
    """The upload succeeded but no placeholder could be located in the
    document.

    Context keys: ``original_ref``, ``remote_url``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NO_MATCHING_REFERENCE,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Staging / asset errors
# ---------------------------------------------------------------------------

class PicrelayStagingError(PicrelayError):
    """Writing the staged copy of an asset failed.

    Context keys: ``path``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.STAGING_IO_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class PicrelayAssetError(PicrelayError):
    """The asset is not something the relay accepts.

    Raised for formats outside ``supported_formats``, assets above
    ``max_file_size_bytes``, and on-disk sources that do not exist.

    Context keys: ``name``, ``extension``, ``size_bytes``, ``max_bytes``,
    ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_ASSET,
            message=message,
            context=context,
            cause=cause,
        )
