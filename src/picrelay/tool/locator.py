"""Discovery and verification of the external uploader.

:class:`ToolLocator` walks candidate sources in order (user config,
well-known install locations, OS lookup commands, PATH scan) and returns
the first candidate that tests positive.  Verdicts are kept in an
:class:`~picrelay.tool.cache.AvailabilityCache` so that a verified tool
is not re-probed until its positive TTL expires.

Testing never opens the tool's GUI: when a process with the tool's name
is already running the candidate is accepted on trust, otherwise it is
probed with ``--help`` / ``--version`` style flags only.
"""

from __future__ import annotations

import asyncio
import os
import platform
import sys
import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path

from picrelay.config import RelayConfig
from picrelay.errors import PicrelayToolNotFoundError
from picrelay.models import (
    AvailabilityResult,
    AvailabilityStatus,
    DiagnosticReport,
    ToolCandidate,
    ToolTestDetails,
    ToolTestResult,
)
from picrelay.observability import get_logger, resolve_metrics
from picrelay.process import is_process_running, run_shell

from .cache import AvailabilityCache
from .candidates import (
    expand_path,
    lookup_commands,
    parse_lookup_output,
    path_scan_candidates,
    well_known_paths,
)
from .probe import inspect_path, probe_candidate

log = get_logger("picrelay.tool")

# Candidate source labels, in discovery order.
SOURCE_CONFIG = "config"
SOURCE_WELL_KNOWN = "well_known"
SOURCE_LOOKUP = "lookup"
SOURCE_PATH_SCAN = "path_scan"

_SOURCE_LABELS = {
    SOURCE_CONFIG: "Configured path",
    SOURCE_WELL_KNOWN: "Common path",
    SOURCE_LOOKUP: "System lookup",
    SOURCE_PATH_SCAN: "PATH entry",
}


class ToolLocator:
    """Find, verify and remember a working path to the uploader.

    Parameters
    ----------
    config:
        Relay configuration.  ``tool_path``, ``tool_name``,
        ``probe_timeout``, the cache TTLs and ``check_throttle`` are used.
    cache:
        Availability cache.  A new one is built from *config* if omitted.
    clock:
        Monotonic time source shared with the cache.
    """

    def __init__(
        self,
        config: RelayConfig,
        cache: AvailabilityCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._clock = clock
        self._cache = cache or AvailabilityCache(
            config.positive_cache_ttl, config.negative_cache_ttl, clock=clock
        )
        self._metrics = resolve_metrics(config.metrics)
        self._resolved: str | None = None
        self._last_report: DiagnosticReport | None = None
        self._last_check: AvailabilityResult | None = None
        self._resolve_lock = asyncio.Lock()
        self._check_lock = asyncio.Lock()

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def cache(self) -> AvailabilityCache:
        return self._cache

    @property
    def resolved_path(self) -> str | None:
        """The path returned by the last successful :meth:`resolve`."""
        return self._resolved

    @property
    def last_report(self) -> DiagnosticReport | None:
        """Report of the most recent discovery run or diagnosis."""
        return self._last_report

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def resolve(self) -> str:
        """Return a verified uploader path, discovering it if needed.

        Once a path has been found it is returned without further checks
        until :meth:`invalidate` or :meth:`update_config` is called.

        Raises
        ------
        PicrelayToolNotFoundError
            If no candidate tests positive.  The exception's ``report``
            holds a :class:`DiagnosticReport` of every candidate tried.
        """
        if self._resolved is not None:
            self._metrics.increment("picrelay.tool_cache_hits_total")
            return self._resolved

        async with self._resolve_lock:
            if self._resolved is not None:
                return self._resolved

            tried: list[ToolCandidate] = []
            seen: set[str] = set()
            async for path, source in self._iter_candidates():
                if path in seen:
                    continue
                seen.add(path)
                candidate = ToolCandidate(path=path, source=source)
                tried.append(candidate)
                if await self.test_candidate(candidate):
                    self._resolved = path
                    self._last_report = DiagnosticReport(
                        status=AvailabilityStatus.AVAILABLE,
                        candidates_tried=tried,
                        suggestions=self._suggestions(AvailabilityStatus.AVAILABLE, tried),
                    )
                    log.info(
                        "Uploader resolved",
                        extra={
                            "extra_fields": {
                                "op": "resolve",
                                "path": path,
                                "source": source,
                                "candidates_tried": len(tried),
                            }
                        },
                    )
                    return path

            status = classify_status(tried)
            report = DiagnosticReport(
                status=status,
                candidates_tried=tried,
                suggestions=self._suggestions(status, tried),
            )
            self._last_report = report
            log.warning(
                "Uploader not found",
                extra={
                    "extra_fields": {
                        "op": "resolve",
                        "status": status.value,
                        "candidates_tried": len(tried),
                    }
                },
            )
            raise PicrelayToolNotFoundError(
                message=(
                    f"Could not find a working {self._config.tool_name} executable "
                    f"({len(tried)} candidates tried). "
                    "Set the uploader path in the settings or install the tool."
                ),
                context={"report": report, "tool_path": self._config.tool_path},
            )

    async def test_candidate(self, candidate: ToolCandidate) -> bool:
        """Test one candidate, consulting and updating the cache.

        Fills in ``exists``, ``executable``, ``verified`` and
        ``verified_at`` on *candidate*.  Spawns a probe only when the
        cache holds no verdict and no matching process is running.
        """
        path = candidate.path
        candidate.exists, candidate.executable = inspect_path(path)

        cached = self._cache.get(path)
        if cached is not None:
            self._metrics.increment("picrelay.tool_cache_hits_total")
            return self._mark(candidate, cached)

        if not (candidate.exists and candidate.executable):
            self._cache.set(path, False)
            return self._mark(candidate, False)

        loop = asyncio.get_running_loop()
        running = await loop.run_in_executor(None, is_process_running, self._config.tool_name)
        if running:
            log.debug(
                "Uploader process running; candidate accepted without probe",
                extra={"extra_fields": {"op": "test_candidate", "path": path}},
            )
            self._cache.set(path, True)
            return self._mark(candidate, True)

        self._metrics.increment("picrelay.probe_spawns_total")
        ok = await probe_candidate(path, self._config.tool_name, self._config.probe_timeout)
        self._cache.set(path, ok)
        return self._mark(candidate, ok)

    def _mark(self, candidate: ToolCandidate, verified: bool) -> bool:
        candidate.verified = verified
        candidate.verified_at = self._clock()
        return verified

    async def _iter_candidates(self) -> AsyncIterator[tuple[str, str]]:
        """Yield ``(path, source)`` pairs in discovery order.

        OS lookup commands are only run once the cheaper sources are
        exhausted, so a hit on a configured or well-known path never
        spawns a lookup shell.
        """
        tool_name = self._config.tool_name
        if self._config.is_configured():
            yield expand_path(self._config.tool_path), SOURCE_CONFIG

        for path in well_known_paths(tool_name):
            yield expand_path(path), SOURCE_WELL_KNOWN

        for command in lookup_commands(tool_name):
            path = await self._run_lookup(command)
            if path:
                yield path, SOURCE_LOOKUP

        for path in path_scan_candidates(tool_name):
            yield path, SOURCE_PATH_SCAN

    async def _run_lookup(self, command: str) -> str | None:
        try:
            result = await run_shell(command, timeout=self._config.probe_timeout)
        except OSError as exc:
            log.debug(
                "Lookup command failed to start",
                extra={"extra_fields": {"op": "lookup", "command": command, "error": str(exc)}},
            )
            return None
        if result.timed_out or result.returncode != 0:
            return None
        return parse_lookup_output(result.stdout, self._config.tool_name)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def check_availability(self) -> AvailabilityResult:
        """Return whether the uploader is usable right now.

        Evaluations are throttled: a call within ``check_throttle``
        seconds of the previous evaluation returns the previous answer.
        A previously resolved path is re-tested through the cache, so the
        tool is only re-probed after its positive TTL has expired.
        """
        previous = self._last_check
        if previous is not None and self._clock() - previous.checked_at < self._config.check_throttle:
            return previous

        async with self._check_lock:
            previous = self._last_check
            if previous is not None and self._clock() - previous.checked_at < self._config.check_throttle:
                return previous

            if self._resolved is not None:
                still_ok = await self.test_candidate(ToolCandidate(path=self._resolved))
                if not still_ok:
                    log.info(
                        "Resolved uploader no longer passes; rediscovering",
                        extra={"extra_fields": {"op": "check_availability", "path": self._resolved}},
                    )
                    self._resolved = None

            try:
                path = await self.resolve()
            except PicrelayToolNotFoundError as exc:
                result = AvailabilityResult(
                    available=False, path=None, message=exc.message, checked_at=self._clock()
                )
            else:
                result = AvailabilityResult(
                    available=True,
                    path=path,
                    message=f"{self._config.tool_name} is available at {path}",
                    checked_at=self._clock(),
                )
            self._last_check = result
            return result

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def diagnose(self) -> DiagnosticReport:
        """Test every candidate (without stopping at the first success).

        The returned report also carries labelled ``detected_paths`` and
        ``system_info``.  It is stored as :attr:`last_report`.
        """
        tried: list[ToolCandidate] = []
        detected: list[str] = []
        seen: set[str] = set()
        async for path, source in self._iter_candidates():
            if path in seen:
                continue
            seen.add(path)
            candidate = ToolCandidate(path=path, source=source)
            await self.test_candidate(candidate)
            tried.append(candidate)
            if candidate.exists:
                detected.append(f"{_SOURCE_LABELS[source]}: {path}")

        status = classify_status(tried)
        report = DiagnosticReport(
            status=status,
            candidates_tried=tried,
            suggestions=self._suggestions(status, tried),
            detected_paths=detected,
            system_info=system_info(),
        )
        self._last_report = report
        log.info(
            "Uploader diagnosis complete",
            extra={
                "extra_fields": {
                    "op": "diagnose",
                    "status": status.value,
                    "candidates_tried": len(tried),
                    "detected": len(detected),
                }
            },
        )
        return report

    async def self_test(self, quick: bool = True) -> ToolTestResult:
        """Check the uploader end to end.

        A quick test only resolves the tool.  A detailed test also checks
        the path on disk and runs a probe unconditionally (bypassing the
        cache and the running-process shortcut), timing the response.
        """
        try:
            path = await self.resolve()
        except PicrelayToolNotFoundError as exc:
            if quick:
                return ToolTestResult(success=False, message=exc.message)
            if not self._config.is_configured():
                return ToolTestResult(
                    success=False,
                    message=exc.message,
                    details=ToolTestDetails(
                        path_exists=False,
                        is_executable=False,
                        command_test=False,
                        response_time_ms=0.0,
                    ),
                )
            # Report on the configured path even though it failed.
            path = expand_path(self._config.tool_path)

        if quick:
            return ToolTestResult(
                success=True,
                message=f"{self._config.tool_name} is available",
                path=path,
            )

        exists, executable = inspect_path(path)
        started = time.perf_counter()
        command_ok = False
        if exists and executable:
            self._metrics.increment("picrelay.probe_spawns_total")
            command_ok = await probe_candidate(
                path, self._config.tool_name, self._config.probe_timeout
            )
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        details = ToolTestDetails(
            path_exists=exists,
            is_executable=executable,
            command_test=command_ok,
            response_time_ms=round(elapsed_ms, 1),
        )
        success = exists and executable and command_ok
        if success:
            message = f"{self._config.tool_name} responded in {details.response_time_ms:.0f} ms"
        elif not exists:
            message = f"{path} does not exist"
        elif not executable:
            message = f"{path} is not executable"
        else:
            message = f"{path} did not respond like {self._config.tool_name}"
        return ToolTestResult(success=success, message=message, path=path, details=details)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def update_config(self, config: RelayConfig) -> None:
        """Swap the configuration and drop every cached verdict."""
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        self._cache.configure(config.positive_cache_ttl, config.negative_cache_ttl)
        self.invalidate()

    def invalidate(self) -> None:
        """Forget the resolved path, the cache and the last check."""
        self._resolved = None
        self._last_check = None
        self._cache.clear()
        log.debug("Uploader cache invalidated", extra={"extra_fields": {"op": "invalidate"}})

    def forget(self, path: str) -> None:
        """Drop *path* after it failed to start, forcing rediscovery."""
        if self._resolved == path:
            self._resolved = None
        self._last_check = None
        self._cache.set(path, False)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def _suggestions(self, status: AvailabilityStatus, tried: list[ToolCandidate]) -> list[str]:
        tool = self._config.tool_name
        configured = expand_path(self._config.tool_path) if self._config.is_configured() else None

        if status == AvailabilityStatus.AVAILABLE:
            working = next((c.path for c in tried if c.verified), None)
            if working and working != configured:
                return [f"Set the uploader path to {working} to skip discovery."]
            return []

        if status == AvailabilityStatus.NOT_FOUND:
            suggestions = [
                f"Install {tool} and make sure it is on your PATH.",
                f"Set the full path to the {tool} executable in the settings.",
            ]
            if sys.platform == "darwin":
                suggestions.append(
                    "On macOS the executable usually lives inside the app bundle, "
                    "e.g. /Applications/uPic.app/Contents/MacOS/uPic."
                )
            if configured:
                suggestions.insert(0, f"The configured path {configured} does not exist.")
            return suggestions

        if status == AvailabilityStatus.NOT_EXECUTABLE:
            return [
                f"Make {c.path} executable (chmod +x {c.path})."
                for c in tried
                if c.exists and not c.executable
            ] or [f"Check the permissions of the {tool} executable."]

        return [
            f"{c.path} exists but did not respond like {tool}; "
            f"run `{c.path} --help` in a terminal to check it."
            for c in tried
            if c.exists and c.executable
        ] + [f"Verify that the configured path points at {tool}, not another program."]


def classify_status(tried: list[ToolCandidate]) -> AvailabilityStatus:
    """Overall verdict of a discovery run."""
    if any(c.verified for c in tried):
        return AvailabilityStatus.AVAILABLE
    if not any(c.exists for c in tried):
        return AvailabilityStatus.NOT_FOUND
    if not any(c.executable for c in tried):
        return AvailabilityStatus.NOT_EXECUTABLE
    return AvailabilityStatus.CONFIGURATION_ERROR


def system_info() -> dict:
    """Platform facts included in a full diagnostic report."""
    return {
        "platform": sys.platform,
        "arch": platform.machine(),
        "home_dir": str(Path.home()),
        "path_env": [p for p in os.environ.get("PATH", "").split(os.pathsep) if p],
    }
