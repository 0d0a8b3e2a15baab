"""Staging of in-memory assets as temporary files.

The external uploader only accepts file paths, so clipboard captures
have to be written to disk first.  The staged file keeps the asset's
display name whenever possible because the uploader may derive the
remote file name from it; on a clash a millisecond timestamp is inserted
before the extension instead of overwriting.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
from pathlib import Path

from picrelay.errors import PicrelayStagingError
from picrelay.observability import get_logger, resolve_metrics

from .validate import normalize_asset_name

log = get_logger("picrelay.staging")

# Attempts at finding a free name before giving up.
_MAX_NAME_ATTEMPTS = 100


class StagingManager:
    """Write asset bytes to uniquely named files and remove them again.

    Parameters
    ----------
    staging_dir:
        Target directory.  Defaults to :func:`tempfile.gettempdir`.
    metrics:
        Optional :class:`~picrelay.observability.MetricsHook`.
    """

    def __init__(self, staging_dir: str | None = None, metrics: object | None = None) -> None:
        self._staging_dir = staging_dir
        self._metrics = resolve_metrics(metrics)

    @property
    def staging_dir(self) -> Path:
        return Path(self._staging_dir or tempfile.gettempdir())

    @staging_dir.setter
    def staging_dir(self, value: str | None) -> None:
        self._staging_dir = value

    # -- stage -------------------------------------------------------------

    def stage(self, data: bytes, suggested_name: str, mime_type: str | None = None) -> str:
        """Write *data* to the staging directory and return the file path.

        Raises
        ------
        PicrelayStagingError
            If the directory cannot be created or the file cannot be
            written.  A partially written file is removed first.
        """
        name = normalize_asset_name(suggested_name, data, mime_type)
        directory = self.staging_dir
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._metrics.increment("picrelay.staging_errors_total", tags={"operation": "mkdir"})
            raise PicrelayStagingError(
                message=f"Cannot create staging directory {directory}: {exc}",
                context={"path": str(directory), "operation": "mkdir"},
                cause=exc,
            ) from exc

        for candidate in _candidate_names(name):
            path = directory / candidate
            try:
                # Exclusive create: never clobber a file another task staged.
                with open(path, "xb") as fh:
                    fh.write(data)
            except FileExistsError:
                continue
            except OSError as exc:
                _remove_quietly(path)
                self._metrics.increment("picrelay.staging_errors_total", tags={"operation": "write"})
                raise PicrelayStagingError(
                    message=f"Failed to write staging file {path}: {exc}",
                    context={"path": str(path), "operation": "write"},
                    cause=exc,
                ) from exc

            log.debug(
                "Asset staged",
                extra={
                    "extra_fields": {
                        "op": "stage",
                        "name": suggested_name,
                        "path": str(path),
                        "bytes": len(data),
                    }
                },
            )
            return str(path)

        self._metrics.increment("picrelay.staging_errors_total", tags={"operation": "write"})
        raise PicrelayStagingError(
            message=f"No free staging file name for {name} in {directory}",
            context={"path": str(directory / name), "operation": "write"},
        )

    async def async_stage(self, data: bytes, suggested_name: str, mime_type: str | None = None) -> str:
        """Async variant of :meth:`stage`; the write runs in an executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.stage, data, suggested_name, mime_type)

    # -- unstage -----------------------------------------------------------

    def unstage(self, path: str | None) -> bool:
        """Delete a staged file.

        Idempotent: a missing file is not an error.  Any other failure
        is logged and swallowed, since a stray temp file does not affect
        correctness.

        Returns
        -------
        bool
            ``True`` if a file was removed.
        """
        if not path:
            return False
        try:
            os.unlink(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            self._metrics.increment("picrelay.staging_errors_total", tags={"operation": "delete"})
            log.warning(
                "Failed to delete staging file",
                extra={"extra_fields": {"op": "unstage", "path": path, "error": str(exc)}},
            )
            return False
        log.debug("Staging file removed", extra={"extra_fields": {"op": "unstage", "path": path}})
        return True

    async def async_unstage(self, path: str | None) -> bool:
        """Async variant of :meth:`unstage`."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.unstage, path)


def _candidate_names(name: str):
    """Yield *name*, then timestamp-disambiguated variants of it."""
    yield name
    stem, ext = os.path.splitext(name)
    stamp = int(time.time() * 1000)
    yield f"{stem}_{stamp}{ext}"
    for counter in range(1, _MAX_NAME_ATTEMPTS):
        yield f"{stem}_{stamp}_{counter}{ext}"


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass
