"""Two-phase document patching.

1. :meth:`DocumentPatcher.insert_placeholder` writes a local reference at
   the cursor as soon as a relay is accepted.
2. :meth:`DocumentPatcher.commit_remote` re-reads the *current* text once
   the upload returned and rewrites the placeholder with the first
   matching strategy from :mod:`picrelay.document.strategies`.

The text is re-read on commit because the user may have kept typing
while the upload ran.
"""

from __future__ import annotations

from collections.abc import Iterable

from picrelay.observability import get_logger, resolve_metrics

from .editor import EditorHandle
from .strategies import DEFAULT_STRATEGIES, PatchRequest, PatchStrategy, apply_strategies

log = get_logger("picrelay.document")


def format_reference(display_name: str, target: str) -> str:
    """Markdown image reference ``![display_name](target)``."""
    return f"![{display_name}]({target})"


class DocumentPatcher:
    """Insert placeholders and rewrite them to remote URLs.

    Parameters
    ----------
    strategies:
        Ordered matching strategies.  Defaults to
        :data:`~picrelay.document.strategies.DEFAULT_STRATEGIES`.
    metrics:
        Optional :class:`~picrelay.observability.MetricsHook`.
    """

    def __init__(
        self,
        strategies: tuple[PatchStrategy, ...] = DEFAULT_STRATEGIES,
        metrics: object | None = None,
    ) -> None:
        self._strategies = strategies
        self._metrics = resolve_metrics(metrics)

    @property
    def strategies(self) -> tuple[PatchStrategy, ...]:
        return self._strategies

    def insert_placeholder(self, editor: EditorHandle, display_name: str, local_ref: str) -> str:
        """Insert ``![display_name](local_ref)`` at the cursor and return it."""
        placeholder = format_reference(display_name, local_ref)
        editor.replace_selection(placeholder)
        log.debug(
            "Placeholder inserted",
            extra={"extra_fields": {"op": "insert_placeholder", "ref": local_ref}},
        )
        return placeholder

    def rewrite(
        self,
        text: str,
        original_ref: str,
        display_name: str,
        remote_url: str,
        host_path: str | None = None,
        replace_all: bool = False,
    ) -> tuple[str, str | None]:
        """Pure text variant of :meth:`commit_remote`.

        Returns the new text and the name of the strategy that matched
        (``None`` and the unchanged text when nothing matched).
        """
        request = PatchRequest(
            original_ref=original_ref,
            display_name=display_name,
            remote_url=remote_url,
            host_path=host_path,
            count=0 if replace_all else 1,
        )
        return apply_strategies(text, request, self._strategies)

    def commit_remote(
        self,
        editor: EditorHandle,
        original_ref: str,
        display_name: str,
        remote_url: str,
        host_path: str | None = None,
        replace_all: bool = False,
    ) -> bool:
        """Rewrite the placeholder for *original_ref* to *remote_url*.

        Parameters
        ----------
        editor:
            The document to patch.  Its text is read fresh.
        original_ref:
            Target of the placeholder as inserted.
        display_name:
            Alt text of the placeholder and the rewritten reference.
        remote_url:
            URL returned by the uploader.
        host_path:
            Storage-relative path of an on-disk asset; enables the host
            embed strategies.
        replace_all:
            Rewrite every occurrence instead of only the first,
            including references to the same target under another alt
            text.

        Returns
        -------
        bool
            ``True`` if the document changed.  On ``False`` the text is
            left exactly as it was.
        """
        strategy = self.commit(
            editor, original_ref, display_name, remote_url, host_path, replace_all
        )
        return strategy is not None

    def commit(
        self,
        editor: EditorHandle,
        original_ref: str,
        display_name: str,
        remote_url: str,
        host_path: str | None = None,
        replace_all: bool = False,
    ) -> str | None:
        """Like :meth:`commit_remote` but return the matching strategy name."""
        text = editor.get_value()
        patched, strategy = self.rewrite(
            text, original_ref, display_name, remote_url, host_path, replace_all
        )
        if strategy is None:
            log.warning(
                "No matching reference to patch",
                extra={
                    "extra_fields": {
                        "op": "commit_remote",
                        "original_ref": original_ref,
                        "remote_url": remote_url,
                        "text_length": len(text),
                    }
                },
            )
            self._metrics.increment("picrelay.patch_strategy_total", tags={"strategy": "none"})
            return None

        editor.set_value(patched)
        self._metrics.increment("picrelay.patch_strategy_total", tags={"strategy": strategy})
        log.info(
            "Reference patched",
            extra={
                "extra_fields": {
                    "op": "commit_remote",
                    "strategy": strategy,
                    "original_ref": original_ref,
                    "remote_url": remote_url,
                }
            },
        )
        return strategy

    def commit_remote_all(
        self,
        editors: Iterable[EditorHandle],
        original_ref: str,
        display_name: str,
        remote_url: str,
        host_path: str | None = None,
    ) -> int:
        """Patch every open document that references the asset.

        Returns the number of documents that changed.
        """
        changed = 0
        for editor in editors:
            if self.commit_remote(editor, original_ref, display_name, remote_url, host_path):
                changed += 1
        return changed
