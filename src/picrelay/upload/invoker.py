"""Invocation of the external uploader.

The uploader is run as ``<tool> -u <file> -o url`` through the platform
shell under a hard timeout.  On expiry the whole process group is
terminated (see :mod:`picrelay.process`), so no uploader is left behind.
"""

from __future__ import annotations

import shlex
import subprocess
import sys
import time

from picrelay.errors import (
    ErrorCode,
    PicrelayTimeoutError,
    PicrelayToolCrashError,
    PicrelayToolNotFoundError,
    PicrelayUnparsableOutputError,
)
from picrelay.observability import get_logger, resolve_metrics
from picrelay.process import run_shell

from .parse import classify_failure, parse_upload_output

log = get_logger("picrelay.upload")

# Longest slice of tool output copied into error context.
_OUTPUT_EXCERPT = 500


def build_upload_command(tool_path: str, file_path: str, platform: str | None = None) -> str:
    """Return the shell command line that uploads *file_path*.

    Both paths are quoted for the target shell, so paths with spaces
    or shell metacharacters are passed through intact.
    """
    platform = platform or sys.platform
    args = [tool_path, "-u", file_path, "-o", "url"]
    if platform.startswith("win"):
        return subprocess.list2cmdline(args)
    return " ".join(shlex.quote(arg) for arg in args)


class UploadInvoker:
    """Run the uploader against a file and return the remote URL.

    Parameters
    ----------
    metrics:
        Optional :class:`~picrelay.observability.MetricsHook`.
    """

    def __init__(self, metrics: object | None = None) -> None:
        self._metrics = resolve_metrics(metrics)

    async def invoke(self, tool_path: str, file_path: str, timeout: float) -> str:
        """Upload *file_path* with the uploader at *tool_path*.

        A URL found in the output is a success even if the exit code is
        non-zero; a zero exit without a URL is a failure.

        Returns
        -------
        str
            The remote URL.

        Raises
        ------
        PicrelayTimeoutError
            The uploader ran longer than *timeout* seconds and was killed.
        PicrelayToolNotFoundError
            The shell could not start the uploader.
        PicrelayUnparsableOutputError
            The uploader exited ``0`` but printed no URL.
        PicrelayToolCrashError
            The uploader exited non-zero with an unrecognised message.
        """
        command = build_upload_command(tool_path, file_path)
        context = {"tool_path": tool_path, "file_path": file_path}
        log.debug(
            "Invoking uploader",
            extra={"extra_fields": {"op": "upload", **context, "timeout": timeout}},
        )

        started = time.perf_counter()
        try:
            result = await run_shell(command, timeout=timeout)
        except OSError as exc:
            raise PicrelayToolNotFoundError(
                message=f"Could not start the uploader: {exc}",
                context=context,
                cause=exc,
            ) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._metrics.timing("picrelay.upload_duration_ms", elapsed_ms)

        if result.timed_out:
            log.warning(
                "Uploader timed out",
                extra={"extra_fields": {"op": "upload", **context, "timeout": timeout}},
            )
            raise PicrelayTimeoutError(
                message=f"Upload timed out after {timeout:g} seconds.",
                context={**context, "timeout_seconds": timeout},
            )

        url = parse_upload_output(result.stdout, result.stderr)
        if url is not None:
            log.info(
                "Upload succeeded",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "file_path": file_path,
                        "url": url,
                        "exit_code": result.returncode,
                        "duration_ms": round(elapsed_ms, 1),
                    }
                },
            )
            return url

        output_context = {
            **context,
            "exit_code": result.returncode,
            "stdout": result.stdout[:_OUTPUT_EXCERPT],
            "stderr": result.stderr[:_OUTPUT_EXCERPT],
        }
        if result.returncode == 0:
            raise PicrelayUnparsableOutputError(
                message="The uploader finished but did not print a URL.",
                context=output_context,
            )

        detail = (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"
        code = classify_failure(result.combined, result.returncode)
        log.warning(
            "Uploader failed",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "file_path": file_path,
                    "exit_code": result.returncode,
                    "error_code": code.value,
                }
            },
        )
        if code == ErrorCode.NOT_FOUND:
            raise PicrelayToolNotFoundError(
                message=f"The uploader could not be started: {detail}",
                context=output_context,
            )
        if code == ErrorCode.TIMEOUT:
            raise PicrelayTimeoutError(
                message=f"The uploader reported a timeout: {detail}",
                context=output_context,
            )
        raise PicrelayToolCrashError(
            message=f"Upload failed: {detail}",
            context=output_context,
        )
