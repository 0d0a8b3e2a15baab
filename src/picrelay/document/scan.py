"""Discovery of image references in Markdown text.

Standard ``![alt](target)`` images are confirmed with mistune's AST so
that references inside code blocks and code spans are ignored; the raw
text of each reference is then recovered with a regex so it can be
rewritten literally.  Host embeds (``![[file.png]]``) are not Markdown
and are found by regex over the text with code regions masked out.
"""

from __future__ import annotations

import html
import re
from urllib.parse import unquote

import mistune

from picrelay.models import ImageReference, ReferenceTarget

from .detect import classify_target

_IMAGE_RE = re.compile(r"!\[([^\]\n]*)\]\(([^)\n]+)\)")
_EMBED_RE = re.compile(r"!\[\[([^\]|\n]+)(?:\|([^\]\n]*))?\]\]")
_FENCE_RE = re.compile(r"^(`{3,}|~{3,})[^\n]*\n.*?(?:^\1[ \t]*$|\Z)", re.MULTILINE | re.DOTALL)
_CODE_SPAN_RE = re.compile(r"(`+)(?!`).+?(?<!`)\1(?!`)", re.DOTALL)
_TITLE_RE = re.compile(r"\s+(?:\"[^\"]*\"|'[^']*')\s*$")

_parser = mistune.create_markdown(renderer="ast")


def _normalize(url: str) -> str:
    return unquote(html.unescape(url))


def _mask(text: str, pattern: re.Pattern) -> str:
    return pattern.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _mask_code(text: str) -> str:
    return _mask(_mask(text, _FENCE_RE), _CODE_SPAN_RE)


def split_target(raw_target: str) -> str:
    """Strip an optional title and angle brackets from a link target."""
    target = _TITLE_RE.sub("", raw_target.strip())
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1]
    return target.strip()


def _alt_text(children: list[dict]) -> str:
    parts: list[str] = []
    for child in children:
        if "raw" in child:
            parts.append(child["raw"])
        elif "children" in child:
            parts.append(_alt_text(child["children"]))
    return "".join(parts)


def _walk_images(tokens: list[dict]):
    for token in tokens:
        if token.get("type") == "image":
            yield token
        children = token.get("children")
        if isinstance(children, list):
            yield from _walk_images(children)


def parsed_image_targets(text: str) -> set[str]:
    """Unquoted targets of every image mistune finds outside code."""
    tokens = _parser(text)
    if isinstance(tokens, str):
        return set()
    targets: set[str] = set()
    for token in _walk_images(tokens):
        url = (token.get("attrs") or {}).get("url", "")
        if url:
            targets.add(_normalize(url))
    return targets


def find_image_references(text: str) -> list[ImageReference]:
    """Return every image reference in *text*, in document order.

    Both Markdown images and host embeds are returned; references inside
    fenced blocks, indented code and code spans are skipped.
    """
    masked = _mask_code(text)
    parsed = parsed_image_targets(text)
    found: list[tuple[int, ImageReference]] = []

    for match in _IMAGE_RE.finditer(masked):
        target = split_target(text[match.start(2):match.end(2)])
        if _normalize(target) not in parsed:
            continue
        found.append((
            match.start(),
            ImageReference(alt=match.group(1), target=target, raw=text[match.start():match.end()]),
        ))

    for match in _EMBED_RE.finditer(masked):
        name = match.group(1).strip()
        label = (match.group(2) or "").strip()
        found.append((
            match.start(),
            ImageReference(
                alt=label or name,
                target=name,
                raw=text[match.start():match.end()],
                embed=True,
            ),
        ))

    found.sort(key=lambda item: item[0])
    return [ref for _pos, ref in found]


def find_local_images(text: str) -> list[ImageReference]:
    """Image references in *text* that still point at local files."""
    result = []
    for ref in find_image_references(text):
        if ref.embed:
            if classify_target(ref.target) != ReferenceTarget.REMOTE_URL:
                result.append(ref)
        elif classify_target(ref.target) == ReferenceTarget.LOCAL_FILE:
            result.append(ref)
    return result
