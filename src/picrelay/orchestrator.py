"""End-to-end relay of local image assets to remote URLs.

:class:`RelayOrchestrator` composes the relay components::

    dedup -> stage -> resolve tool -> upload -> patch document -> cleanup

Every relay returns a :class:`~picrelay.models.RelayResult`; relay
errors never escape to the host.  Cleanup (removal of the staged copy)
and release of the deduplication claim run on every exit path, including
unexpected exceptions, which are re-raised afterwards.

Usage::

    import asyncio
    from picrelay import InMemoryAsset, RelayConfig, RelayOrchestrator, TextBuffer

    async def main():
        relay = RelayOrchestrator(RelayConfig(tool_path="~/bin/upic"))
        editor = TextBuffer("Screenshot: ")
        result = await relay.relay(InMemoryAsset(png_bytes, "shot.png"), editor)
        print(result.url, editor.get_value())

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from picrelay.config import RelayConfig
from picrelay.dedup import TaskDeduplicator, fingerprint_of, resolve_source_path
from picrelay.document.detect import local_path_of
from picrelay.document.editor import EditorHandle, TextBuffer
from picrelay.document.patcher import DocumentPatcher
from picrelay.document.scan import find_local_images
from picrelay.errors import (
    ErrorCode,
    PicrelayAssetError,
    PicrelayError,
    PicrelayToolNotFoundError,
)
from picrelay.models import (
    AssetSource,
    AssetTask,
    FailureNotice,
    ImageReference,
    InMemoryAsset,
    OnDiskAsset,
    RelayOutcome,
    RelayResult,
    RelayState,
    RelayWarning,
    TaskState,
)
from picrelay.observability import get_logger, resolve_metrics
from picrelay.staging import StagingManager, normalize_asset_name, validate_asset
from picrelay.state import RelayStateMachine, TaskStateMachine
from picrelay.tool.locator import ToolLocator
from picrelay.upload.invoker import UploadInvoker
from picrelay.upload.verify import verify_remote_url

log = get_logger("picrelay.relay")


# ---------------------------------------------------------------------------
# Host notifications
# ---------------------------------------------------------------------------

@runtime_checkable
class RelayNotifier(Protocol):
    """User-visible notifications implemented by the host."""

    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def failure(self, notice: FailureNotice) -> None:
        ...


class NoopNotifier:
    """Default notifier that discards everything."""

    __slots__ = ()

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def failure(self, notice: FailureNotice) -> None:
        pass


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class RelayOrchestrator:
    """Relay local image assets through the external uploader.

    Parameters
    ----------
    config:
        Relay configuration.  Defaults to ``RelayConfig()``.
    locator, stager, invoker, deduplicator, patcher:
        Components.  Each is built from *config* when omitted.
    notifier:
        Host notifier.  Failures are always forwarded; info messages only
        when ``config.show_notifications`` is set.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        locator: ToolLocator | None = None,
        stager: StagingManager | None = None,
        invoker: UploadInvoker | None = None,
        deduplicator: TaskDeduplicator | None = None,
        patcher: DocumentPatcher | None = None,
        notifier: RelayNotifier | None = None,
    ) -> None:
        self._config = config or RelayConfig()
        self._metrics = resolve_metrics(self._config.metrics)
        self._locator = locator or ToolLocator(self._config)
        self._stager = stager or StagingManager(self._config.staging_dir, self._config.metrics)
        self._invoker = invoker or UploadInvoker(self._config.metrics)
        self._dedup = deduplicator or TaskDeduplicator()
        self._patcher = patcher or DocumentPatcher(metrics=self._config.metrics)
        self._notifier: RelayNotifier = notifier or NoopNotifier()

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def locator(self) -> ToolLocator:
        return self._locator

    @property
    def deduplicator(self) -> TaskDeduplicator:
        return self._dedup

    def update_config(self, config: RelayConfig) -> None:
        """Apply new settings everywhere and invalidate the tool cache."""
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        self._locator.update_config(config)
        self._stager.staging_dir = config.staging_dir
        log.info(
            "Relay configuration updated",
            extra={"extra_fields": {"op": "update_config", "tool_path": config.tool_path}},
        )

    # ------------------------------------------------------------------
    # Single relay
    # ------------------------------------------------------------------

    async def relay(
        self,
        source: AssetSource,
        editor: EditorHandle,
        *,
        original_ref: str | None = None,
        host_path: str | None = None,
        replace_all: bool = False,
        other_editors: Iterable[EditorHandle] = (),
    ) -> RelayResult:
        """Relay one asset and patch its reference in *editor*.

        Parameters
        ----------
        source:
            The asset, in memory or on disk.
        editor:
            The document that holds (or will hold) the reference.
        original_ref:
            Target of a reference already in the document.  When omitted
            a placeholder is inserted at the cursor and used instead.
        host_path:
            Storage-relative path of an on-disk asset, enabling the host
            embed patch strategies.
        replace_all:
            Rewrite every matching occurrence, not only the first.
        other_editors:
            Further open documents to patch after *editor*.

        Returns
        -------
        RelayResult
            ``SKIPPED`` for a duplicate in flight, ``FAILED`` with an
            error code, or ``SUCCEEDED`` (check ``patched``).
        """
        machine = RelayStateMachine(label=source.display_name)
        machine.transition(RelayState.DEDUPLICATING)

        fingerprint = fingerprint_of(source, self._config.vault_root)
        if not self._dedup.try_begin(fingerprint):
            machine.transition(RelayState.DONE)
            log.info(
                "Duplicate relay skipped",
                extra={"extra_fields": {"op": "relay", "name": fingerprint.name}},
            )
            self._metrics.increment("picrelay.relay_total", tags={"outcome": RelayOutcome.SKIPPED.value})
            return RelayResult(
                outcome=RelayOutcome.SKIPPED,
                display_name=source.display_name,
                original_ref=original_ref or "",
            )

        task = AssetTask(fingerprint=fingerprint, source=source)
        task_machine = TaskStateMachine(label=source.display_name)
        display_name = source.display_name
        ref = original_ref or ""
        try:
            machine.transition(RelayState.STAGING)
            upload_path, display_name, ref = await self._prepare(
                source, editor, task, task_machine, original_ref
            )

            machine.transition(RelayState.RESOLVING)
            tool_path = await self._locator.resolve()

            machine.transition(RelayState.UPLOADING)
            task_machine.transition(TaskState.UPLOADING)
            task.state = TaskState.UPLOADING
            if self._config.show_notifications:
                self._notifier.info(f"Uploading {display_name}...")
            try:
                url = await self._invoker.invoke(tool_path, upload_path, self._config.upload_timeout)
            except PicrelayToolNotFoundError:
                self._locator.forget(tool_path)
                raise
            task.url = url
            task_machine.transition(TaskState.SUCCEEDED)
            task.state = TaskState.SUCCEEDED

            warnings: list[RelayWarning] = []
            if self._config.verify_remote_url:
                warning = await verify_remote_url(url)
                if warning is not None:
                    warnings.append(warning)

            machine.transition(RelayState.PATCHING)
            result = await self._patch(
                source, editor, other_editors, ref, display_name, url,
                host_path, replace_all, warnings,
            )
        except PicrelayError as exc:
            result = self._fail(exc, task, task_machine, display_name, ref)
        finally:
            machine.fail_to_cleanup()
            await self._cleanup(task, task_machine)
            machine.transition(RelayState.DONE)
            self._dedup.end(fingerprint)

        self._metrics.increment("picrelay.relay_total", tags={"outcome": result.outcome.value})
        return result

    async def _prepare(
        self,
        source: AssetSource,
        editor: EditorHandle,
        task: AssetTask,
        task_machine: TaskStateMachine,
        original_ref: str | None,
    ) -> tuple[str, str, str]:
        """Validate, insert the placeholder and stage.

        Returns ``(upload_path, display_name, reference)``.
        """
        if isinstance(source, InMemoryAsset):
            name = normalize_asset_name(source.name, source.data, source.mime_type)
            validate_asset(name, len(source.data), self._config)
            ref = original_ref or name
            if original_ref is None:
                self._patcher.insert_placeholder(editor, name, ref)
            staged = await self._stager.async_stage(source.data, name, source.mime_type)
            task.staging_path = staged
            task_machine.transition(TaskState.STAGED)
            task.state = TaskState.STAGED
            return staged, name, ref

        path = resolve_source_path(source, self._config.vault_root)
        if not path.is_file():
            raise PicrelayAssetError(
                message=f"Image file not found: {path}",
                context={"name": source.display_name, "path": str(path)},
            )
        validate_asset(path.name, path.stat().st_size, self._config)
        ref = original_ref or source.path
        if original_ref is None:
            self._patcher.insert_placeholder(editor, source.display_name, ref)
        return str(path), source.display_name, ref

    async def _patch(
        self,
        source: AssetSource,
        editor: EditorHandle,
        other_editors: Iterable[EditorHandle],
        ref: str,
        display_name: str,
        url: str,
        host_path: str | None,
        replace_all: bool,
        warnings: list[RelayWarning],
    ) -> RelayResult:
        strategy = self._patcher.commit(editor, ref, display_name, url, host_path, replace_all)
        patched = strategy is not None
        others = self._patcher.commit_remote_all(other_editors, ref, display_name, url, host_path)
        patched = patched or others > 0

        message = ""
        if not patched:
            message = (
                f"Uploaded {display_name} to {url}, but the reference {ref!r} "
                "was not found in the document. Insert the link manually."
            )
            warnings.append(RelayWarning(
                code=ErrorCode.NO_MATCHING_REFERENCE.value,
                message=message,
                context={"original_ref": ref, "remote_url": url},
            ))
            self._notifier.warning(message)
        else:
            if self._config.show_notifications:
                self._notifier.info(f"Uploaded {display_name}")
            if self._config.delete_local_file and isinstance(source, OnDiskAsset):
                warning = await self._delete_local_source(source)
                if warning is not None:
                    warnings.append(warning)

        log.info(
            "Relay succeeded",
            extra={
                "extra_fields": {
                    "op": "relay",
                    "name": display_name,
                    "url": url,
                    "patched": patched,
                    "strategy": strategy,
                }
            },
        )
        return RelayResult(
            outcome=RelayOutcome.SUCCEEDED,
            display_name=display_name,
            original_ref=ref,
            url=url,
            patched=patched,
            message=message,
            strategy=strategy,
            warnings=warnings,
        )

    def _fail(
        self,
        exc: PicrelayError,
        task: AssetTask,
        task_machine: TaskStateMachine,
        display_name: str,
        ref: str,
    ) -> RelayResult:
        code = ErrorCode(exc.code)
        task.error_code = code
        if task_machine.can_transition(TaskState.FAILED):
            task_machine.transition(TaskState.FAILED)
            task.state = TaskState.FAILED
        log.warning(
            "Relay failed",
            extra={
                "extra_fields": {
                    "op": "relay",
                    "name": display_name,
                    "error_code": code.value,
                    "error": exc.message,
                }
            },
        )
        self._notifier.failure(FailureNotice(kind=code, message=exc.message, original_ref=ref))
        return RelayResult(
            outcome=RelayOutcome.FAILED,
            display_name=display_name,
            original_ref=ref,
            error_code=code,
            message=exc.message,
        )

    async def _cleanup(self, task: AssetTask, task_machine: TaskStateMachine) -> None:
        await self._stager.async_unstage(task.staging_path)
        # An unexpected exception leaves the task mid-flight.
        if task_machine.can_transition(TaskState.FAILED):
            task_machine.transition(TaskState.FAILED)
        task_machine.transition(TaskState.CLEANED)
        task.state = TaskState.CLEANED

    async def _delete_local_source(self, source: OnDiskAsset) -> RelayWarning | None:
        """Delete a relayed on-disk source, only inside ``vault_root``."""
        path = resolve_source_path(source, self._config.vault_root)
        if not self._config.vault_root or not _is_within(path, Path(self._config.vault_root)):
            log.warning(
                "Refusing to delete file outside the storage root",
                extra={"extra_fields": {"op": "delete_local", "path": str(path)}},
            )
            return RelayWarning(
                code="LOCAL_FILE_KEPT",
                message=f"{path} is outside the storage root and was not deleted.",
                context={"path": str(path)},
            )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, os.unlink, path)
        except OSError as exc:
            log.warning(
                "Failed to delete local source",
                extra={"extra_fields": {"op": "delete_local", "path": str(path), "error": str(exc)}},
            )
            return RelayWarning(
                code="LOCAL_FILE_DELETE_FAILED",
                message=f"Could not delete {path}: {exc}",
                context={"path": str(path)},
            )
        log.info("Local source deleted", extra={"extra_fields": {"op": "delete_local", "path": str(path)}})
        return None

    # ------------------------------------------------------------------
    # Batch relays
    # ------------------------------------------------------------------

    async def relay_many(
        self,
        sources: Sequence[AssetSource],
        editor: EditorHandle,
    ) -> list[RelayResult]:
        """Relay several assets (e.g. a multi-file drop) concurrently.

        At most ``config.max_concurrent`` relays run at once; waiting
        relays start in input order.  Results are returned in input
        order.
        """
        semaphore = asyncio.Semaphore(self._config.max_concurrent)

        async def _relay_one(source: AssetSource) -> RelayResult:
            async with semaphore:
                return await self.relay(source, editor)

        return list(await asyncio.gather(*(_relay_one(s) for s in sources)))

    async def relay_selection(self, editor: EditorHandle) -> list[RelayResult]:
        """Relay every local image referenced in the current selection.

        The selection text is patched as a whole once all uploads have
        finished.  If the selection still holds the original text it is
        replaced in place; if the user moved it meanwhile, the first
        occurrence of the original text in the document is rewritten
        instead, and nothing is written when that text is gone.
        """
        selection = editor.get_selection()
        if not selection:
            self._notifier.warning("Select an image link first.")
            return []
        scratch = TextBuffer(selection)
        results = await self._relay_references(scratch, selection)
        patched = scratch.get_value()
        if patched == selection:
            return results

        if editor.get_selection() == selection:
            editor.replace_selection(patched)
            return results
        text = editor.get_value()
        if selection in text:
            editor.set_value(text.replace(selection, patched, 1))
        else:
            message = "The selected text changed during upload; links were not updated."
            log.warning(
                "Selection changed during upload; nothing written",
                extra={"extra_fields": {"op": "relay_selection", "length": len(selection)}},
            )
            self._notifier.warning(message)
            for result in results:
                if result.patched:
                    result.patched = False
                    result.warnings.append(RelayWarning(
                        code=ErrorCode.NO_MATCHING_REFERENCE.value,
                        message=message,
                        context={"original_ref": result.original_ref, "remote_url": result.url},
                    ))
        return results

    async def relay_document(
        self,
        editor: EditorHandle,
        resolve_link: Callable[[str], str | None] | None = None,
    ) -> list[RelayResult]:
        """Relay every local image referenced anywhere in the document.

        Parameters
        ----------
        editor:
            The document to scan and patch.
        resolve_link:
            Host hook mapping a reference target to a filesystem path
            (e.g. resolving ``![[photo.png]]`` through the host's link
            index).  Returns ``None`` to fall back to ``vault_root``.
        """
        return await self._relay_references(editor, editor.get_value(), resolve_link)

    async def _relay_references(
        self,
        editor: EditorHandle,
        text: str,
        resolve_link: Callable[[str], str | None] | None = None,
    ) -> list[RelayResult]:
        refs = find_local_images(text)
        if not refs:
            self._notifier.warning("No local images found.")
            return []

        unique: dict[tuple[str, bool], ImageReference] = {}
        for ref in refs:
            unique.setdefault((ref.target, ref.embed), ref)

        semaphore = asyncio.Semaphore(self._config.max_concurrent)

        async def _relay_one(ref: ImageReference) -> RelayResult:
            path = local_path_of(ref.target)
            if resolve_link is not None:
                path = resolve_link(ref.target) or path
            # Embed labels are sizes or captions, not names.
            display_name = Path(path).name if ref.embed else (ref.alt or Path(path).name)
            source = OnDiskAsset(path=path, display_name=display_name)
            async with semaphore:
                return await self.relay(
                    source,
                    editor,
                    original_ref=ref.target,
                    host_path=ref.target if ref.embed else None,
                    replace_all=True,
                )

        results = list(await asyncio.gather(*(_relay_one(r) for r in unique.values())))
        succeeded = sum(1 for r in results if r.succeeded)
        log.info(
            "Batch relay complete",
            extra={
                "extra_fields": {
                    "op": "relay_references",
                    "references": len(unique),
                    "succeeded": succeeded,
                }
            },
        )
        if self._config.show_notifications:
            self._notifier.info(f"Uploaded {succeeded} of {len(unique)} images")
        return results


def _is_within(path: Path, root: Path) -> bool:
    try:
        resolved = path.resolve()
        resolved_root = root.resolve()
    except OSError:
        return False
    return resolved == resolved_root or resolved_root in resolved.parents
