"""Uploader discovery, verification and availability tracking.

Exports
-------
ToolLocator
    Find and verify a working uploader path; diagnostics and self tests.
ToolAvailabilityService
    Periodic background availability checks with start/stop lifecycle.
AvailabilityCache
    TTL cache of candidate verdicts.
probe_candidate
    Run one candidate with side-effect-free flags.
"""

from .cache import AvailabilityCache
from .locator import ToolLocator, classify_status
from .probe import inspect_path, probe_candidate
from .service import ToolAvailabilityService

__all__ = [
    "AvailabilityCache",
    "ToolAvailabilityService",
    "ToolLocator",
    "classify_status",
    "inspect_path",
    "probe_candidate",
]
