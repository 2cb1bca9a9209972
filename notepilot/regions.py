"""Annotated regions marking proposed additions inside a document.

An inserted region looks like this::

    <div class="notepilot-pending" data-change-id="id_..." data-padding="2,1">
    proposed content
    </div><!-- notepilot:id_... -->

The padding attribute records how many newlines were added before and after
the block to separate it from the surrounding text, so rejecting the region
restores the document byte for byte and accepting it leaves the content with
the same spacing.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

__all__ = [
    "REGION_PATTERN",
    "insert_region",
    "unwrap_region",
    "remove_region",
    "region_ids",
    "has_region",
]

logger = logging.getLogger(__name__)

_OPEN = '<div class="notepilot-pending" data-change-id="{id}" data-padding="{before},{after}">'
_CLOSE = "</div><!-- notepilot:{id} -->"

REGION_PATTERN = re.compile(
    r'<div class="notepilot-pending" data-change-id="(?P<id>[A-Za-z0-9_\-]+)" '
    r'data-padding="(?P<before>\d+),(?P<after>\d+)">\n?'
    r"(?P<body>[\s\S]*?)\n?"
    r"</div><!-- notepilot:(?P=id) -->"
)


def _padding_before(prefix: str) -> int:
    if not prefix or prefix.endswith("\n\n"):
        return 0
    if prefix.endswith("\n"):
        return 1
    return 2


def _padding_after(prefix: str, suffix: str) -> int:
    if suffix:
        return 1 if suffix.startswith("\n") else 2
    return 1 if prefix.endswith("\n") else 0


def insert_region(text: str, content: str, change_id: str, offset: Optional[int] = None) -> str:
    """Insert ``content`` wrapped in an annotated region at ``offset``.

    ``offset`` defaults to the end of ``text`` and is clamped to its bounds.
    """

    if offset is None:
        offset = len(text)
    offset = max(0, min(offset, len(text)))
    prefix, suffix = text[:offset], text[offset:]
    before = _padding_before(prefix)
    after = _padding_after(prefix, suffix)
    block = "".join([
        "\n" * before,
        _OPEN.format(id=change_id, before=before, after=after),
        "\n",
        content,
        "\n",
        _CLOSE.format(id=change_id),
        "\n" * after,
    ])
    return prefix + block + suffix


def _find(text: str, change_id: str) -> Optional[re.Match[str]]:
    for match in REGION_PATTERN.finditer(text):
        if match.group("id") == change_id:
            return match
    return None


def _padding_span(text: str, match: re.Match[str]) -> tuple[int, int, int, int]:
    """Return the region span widened by its recorded padding, plus the padding."""

    before = int(match.group("before"))
    after = int(match.group("after"))
    start, end = match.span()

    lead = 0
    while lead < before and start - lead - 1 >= 0 and text[start - lead - 1] == "\n":
        lead += 1
    trail = 0
    while trail < after and end + trail < len(text) and text[end + trail] == "\n":
        trail += 1
    return start - lead, end + trail, lead, trail


def unwrap_region(text: str, change_id: str) -> Optional[str]:
    """Replace the region with its inner content, or return ``None`` if absent."""

    match = _find(text, change_id)
    if match is None:
        return None
    start, end, lead, trail = _padding_span(text, match)
    return text[:start] + "\n" * lead + match.group("body") + "\n" * trail + text[end:]


def remove_region(text: str, change_id: str) -> Optional[str]:
    """Drop the region and its padding, or return ``None`` if absent."""

    match = _find(text, change_id)
    if match is None:
        return None
    start, end, _lead, _trail = _padding_span(text, match)
    return text[:start] + text[end:]


def region_ids(text: str) -> list[str]:
    """Return the change ids of every annotated region in ``text``."""

    return [match.group("id") for match in REGION_PATTERN.finditer(text)]


def has_region(text: str, change_id: str) -> bool:
    return _find(text, change_id) is not None
