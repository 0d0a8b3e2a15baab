"""Editor abstraction shared with the host.

The relay core never holds on to document text across an ``await``; it
always goes back to an :class:`EditorHandle` for the current value.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EditorHandle(Protocol):
    """What the relay needs from a host editor."""

    def get_value(self) -> str:
        """Return the full current document text."""
        ...

    def set_value(self, text: str) -> None:
        """Replace the full document text."""
        ...

    def get_selection(self) -> str:
        """Return the currently selected text (may be empty)."""
        ...

    def replace_selection(self, text: str) -> None:
        """Replace the selection (or insert at the cursor) with *text*."""
        ...


class TextBuffer:
    """In-memory :class:`EditorHandle`, used by hosts without an editor
    object of their own and by tests.

    Parameters
    ----------
    text:
        Initial content.  The cursor starts at the end.
    path:
        Optional host path of the document, for logging.
    """

    def __init__(self, text: str = "", path: str | None = None) -> None:
        self._text = text
        self._start = len(text)
        self._end = len(text)
        self.path = path

    def get_value(self) -> str:
        return self._text

    def set_value(self, text: str) -> None:
        """Replace the whole text.

        When the changed region lies entirely before the selection, the
        selection moves with the text after it; otherwise it is clamped.
        """
        old = self._text
        limit = min(len(old), len(text))
        prefix = 0
        while prefix < limit and old[prefix] == text[prefix]:
            prefix += 1
        suffix = 0
        while suffix < limit - prefix and old[-1 - suffix] == text[-1 - suffix]:
            suffix += 1

        self._text = text
        if len(old) - suffix <= self._start:
            delta = len(text) - len(old)
            self._start += delta
            self._end += delta
        self._start = min(max(self._start, 0), len(text))
        self._end = min(max(self._end, self._start), len(text))

    def select(self, start: int, end: int | None = None) -> None:
        """Select ``text[start:end]``; with *end* omitted, place the cursor."""
        end = start if end is None else end
        if not 0 <= start <= end <= len(self._text):
            raise ValueError(f"Selection {start}:{end} outside 0:{len(self._text)}")
        self._start, self._end = start, end

    def get_selection(self) -> str:
        return self._text[self._start:self._end]

    def replace_selection(self, text: str) -> None:
        self._text = self._text[:self._start] + text + self._text[self._end:]
        self._start = self._end = self._start + len(text)

    def __repr__(self) -> str:
        return f"TextBuffer(len={len(self._text)}, path={self.path!r})"
