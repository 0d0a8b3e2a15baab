"""Periodic uploader availability checks.

:class:`ToolAvailabilityService` is owned by the host for the lifetime
of the process, not by individual relays.  It re-evaluates availability
every ``check_interval`` seconds, purges expired cache entries, and
calls an optional callback when availability changes.

Usage::

    async with ToolAvailabilityService(locator) as service:
        ...
        if service.last_result and not service.last_result.available:
            ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from picrelay.errors import PicrelayError
from picrelay.models import AvailabilityResult
from picrelay.observability import get_logger

from .locator import ToolLocator

log = get_logger("picrelay.tool.service")


class ToolAvailabilityService:
    """Background availability checker.

    Parameters
    ----------
    locator:
        The locator to query.
    interval:
        Seconds between checks.  Defaults to the locator's
        ``config.check_interval``.
    on_change:
        Called with the new :class:`AvailabilityResult` whenever
        availability flips (including the first check).
    """

    def __init__(
        self,
        locator: ToolLocator,
        interval: float | None = None,
        on_change: Callable[[AvailabilityResult], None] | None = None,
    ) -> None:
        self._locator = locator
        self._interval = interval
        self._on_change = on_change
        # Loop task and the event that stops it; set together by start().
        self._runner: tuple[asyncio.Task, asyncio.Event] | None = None
        self._last: AvailabilityResult | None = None

    @property
    def interval(self) -> float:
        return self._interval if self._interval is not None else self._locator.config.check_interval

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner[0].done()

    @property
    def last_result(self) -> AvailabilityResult | None:
        return self._last

    async def start(self) -> None:
        """Start the periodic loop.  Starting twice is a no-op."""
        if self.running:
            return
        stop_event = asyncio.Event()
        task = asyncio.create_task(self._run(stop_event), name="picrelay-availability")
        self._runner = (task, stop_event)
        log.info(
            "Availability service started",
            extra={"extra_fields": {"op": "service_start", "interval": self.interval}},
        )

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit.  Stopping twice is a no-op."""
        if self._runner is None:
            return
        (task, stop_event), self._runner = self._runner, None
        stop_event.set()
        await task
        log.info("Availability service stopped", extra={"extra_fields": {"op": "service_stop"}})

    async def check_now(self) -> AvailabilityResult:
        """Run one check immediately (subject to the locator's throttle)."""
        result = await self._locator.check_availability()
        self._locator.cache.purge_expired()
        changed = self._last is None or self._last.available != result.available
        self._last = result
        if changed:
            log.info(
                "Uploader availability changed",
                extra={
                    "extra_fields": {
                        "op": "availability",
                        "available": result.available,
                        "path": result.path,
                    }
                },
            )
            if self._on_change is not None:
                self._on_change(result)
        return result

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.check_now()
            except PicrelayError as exc:
                log.warning(
                    "Availability check failed",
                    extra={"extra_fields": {"op": "availability", "error": exc.message}},
                )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    async def __aenter__(self) -> ToolAvailabilityService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
