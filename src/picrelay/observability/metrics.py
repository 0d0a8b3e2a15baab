"""Metrics hook protocol and no-op default implementation.

picrelay emits counters and timings at key points of a relay.  By
default a :class:`NoopMetricsHook` is used so there is zero overhead; a
host can supply any object satisfying :class:`MetricsHook` through
``RelayConfig.metrics``.

Emitted metric names:

* ``picrelay.relay_total``             -- counter, tag ``outcome``
* ``picrelay.upload_duration_ms``      -- timing
* ``picrelay.probe_spawns_total``      -- counter
* ``picrelay.tool_cache_hits_total``   -- counter
* ``picrelay.patch_strategy_total``    -- counter, tag ``strategy``
* ``picrelay.staging_errors_total``    -- counter, tag ``operation``
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(metrics: Any | None) -> MetricsHook:
    """Return *metrics* or a shared no-op hook when it is ``None``."""
    return metrics if metrics is not None else _NOOP


_NOOP = NoopMetricsHook()
