"""Ordered reference-matching strategies for document patching.

Each strategy is a named function that tries to rewrite the placeholder
reference of one upload into its remote form.  The patcher runs them
most-specific-first and stops at the first one that changes the text;
when every occurrence is rewritten, the same-target strategy also runs
after that match.

Matching is heuristic.  The looser strategies can hit a reference to a
different asset whose name contains this one's; the ordering keeps such
misses rare, it does not rule them out.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple
from urllib.parse import quote, unquote

# Loose strategies only rewrite targets that are not already remote.
_NOT_REMOTE = r"(?!\s*<?https?://)"


@dataclass(frozen=True)
class PatchRequest:
    """Everything a strategy needs to locate and rewrite one reference.

    Attributes
    ----------
    original_ref:
        Target of the placeholder as inserted (``photo.png``,
        ``assets/photo.png``...).
    display_name:
        Alt text of the placeholder and of the rewritten reference.
    remote_url:
        URL to write.
    host_path:
        Storage-relative path of an on-disk asset.  Enables the host
        embed strategies; ``None`` for freshly staged assets.
    count:
        Occurrences to rewrite; ``0`` rewrites all of them.
    """

    original_ref: str
    display_name: str
    remote_url: str
    host_path: str | None = None
    count: int = 1

    @property
    def filename(self) -> str:
        name = posixpath.basename(unquote(self.original_ref).replace("\\", "/"))
        return name or self.display_name

    @property
    def replacement(self) -> str:
        return f"![{self.display_name}]({self.remote_url})"


class PatchStrategy(NamedTuple):
    name: str
    apply: Callable[[str, PatchRequest], str]
    # Also run after an earlier match when every occurrence is rewritten.
    sweep: bool = False


def _sub(pattern: str, text: str, request: PatchRequest) -> str:
    replacement = request.replacement
    return re.sub(pattern, lambda _m: replacement, text, count=request.count)


def _filename_alternatives(filename: str) -> str:
    """Regex matching *filename* raw or percent-encoded."""
    forms = {re.escape(filename), re.escape(quote(filename))}
    return "(?:" + "|".join(sorted(forms, key=len, reverse=True)) + ")"


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def exact(text: str, request: PatchRequest) -> str:
    """The literal placeholder ``![display](original_ref)``."""
    literal = f"![{request.display_name}]({request.original_ref})"
    if request.count == 0:
        return text.replace(literal, request.replacement)
    return text.replace(literal, request.replacement, request.count)


def same_alt_filename(text: str, request: PatchRequest) -> str:
    """Same alt text, any target containing the file name."""
    pattern = (
        rf"!\[{re.escape(request.display_name)}\]"
        rf"\({_NOT_REMOTE}[^)\n]*{_filename_alternatives(request.filename)}[^)\n]*\)"
    )
    return _sub(pattern, text, request)


def same_path_any_alt(text: str, request: PatchRequest) -> str:
    """Same target (optionally with a title), any alt text."""
    pattern = (
        rf"!\[[^\]\n]*\]\(\s*<?{re.escape(request.original_ref)}>?"
        r"(?:\s+\"[^\"\n]*\")?\s*\)"
    )
    return _sub(pattern, text, request)


def loose_filename(text: str, request: PatchRequest) -> str:
    """Any image reference whose target ends a path segment with the file name.

    The file name must not be glued to a longer name (``myphoto.png``
    does not match ``photo.png``); query strings and fragments after it
    are tolerated.
    """
    pattern = (
        rf"!\[[^\]\n]*\]\({_NOT_REMOTE}[^)\n]*(?<![\w.-]){_filename_alternatives(request.filename)}"
        r"(?:[?#][^)\n]*)?\s*(?:\"[^\"\n]*\")?\s*\)"
    )
    return _sub(pattern, text, request)


def _embed_pattern(target: str) -> str:
    return rf"!\[\[{re.escape(target)}(?:\|[^\]\n]*)?\]\]"


def host_embed_name(text: str, request: PatchRequest) -> str:
    """``![[photo.png]]`` (optionally ``![[photo.png|300]]``)."""
    if not request.host_path:
        return text
    return _sub(_embed_pattern(posixpath.basename(request.host_path)), text, request)


def host_embed_path(text: str, request: PatchRequest) -> str:
    """``![[assets/photo.png]]``, the full storage-relative path."""
    if not request.host_path:
        return text
    return _sub(_embed_pattern(request.host_path), text, request)


def host_embed_stem(text: str, request: PatchRequest) -> str:
    """``![[photo]]``, the name without its extension."""
    if not request.host_path:
        return text
    stem, _ext = posixpath.splitext(posixpath.basename(request.host_path))
    if not stem:
        return text
    return _sub(_embed_pattern(stem), text, request)


DEFAULT_STRATEGIES: tuple[PatchStrategy, ...] = (
    PatchStrategy("exact", exact),
    PatchStrategy("same_alt_filename", same_alt_filename),
    PatchStrategy("same_path_any_alt", same_path_any_alt, sweep=True),
    PatchStrategy("loose_filename", loose_filename),
    PatchStrategy("host_embed_name", host_embed_name),
    PatchStrategy("host_embed_path", host_embed_path),
    PatchStrategy("host_embed_stem", host_embed_stem),
)
"""Strategies in the order the patcher tries them."""


def apply_strategies(
    text: str,
    request: PatchRequest,
    strategies: tuple[PatchStrategy, ...] = DEFAULT_STRATEGIES,
) -> tuple[str, str | None]:
    """Run *strategies* in order until one changes *text*.

    With ``request.count == 0`` the later strategies flagged ``sweep``
    still run after the first match, so references to the same target
    under a different alt text are rewritten too.

    Returns
    -------
    tuple[str, str | None]
        The new text and the name of the first matching strategy, or
        the unchanged text and ``None``.
    """
    matched: str | None = None
    for strategy in strategies:
        if matched is not None and not strategy.sweep:
            continue
        patched = strategy.apply(text, request)
        if patched == text:
            continue
        text = patched
        if matched is None:
            matched = strategy.name
            if request.count != 0:
                break
    return text, matched
