"""Extract structured action intents from model replies."""

from __future__ import annotations

import logging
import re
from typing import Optional

from notepilot.models import ActionIntent, ActionType

__all__ = ["ACTION_MARKER", "parse_action", "detect_request_kind"]

logger = logging.getLogger(__name__)

# A quote opens a quoted value only straight after "key:"; quoted values may
# contain "]". Any other quote, such as an apostrophe in a name, is plain text.
_VALUE_START = r"(?:(?<=:)|(?<=:\s))"

ACTION_MARKER = re.compile(
    r"\[ACTION:(?P<type>write|create|delete|remove_content)\b"
    rf"(?P<params>(?:[^\]\"']|{_VALUE_START}\"[^\"]*\"|{_VALUE_START}'[^']*'|[\"'])*)\]",
    re.IGNORECASE,
)

_PARAM_KEY = re.compile(r"(?:^|(?<=[\s,]))(?P<key>filename|pattern|startline|endline)\s*:", re.IGNORECASE)


def _clean_value(raw: str) -> Optional[str]:
    value = raw.strip().rstrip(",").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("\"", "'"):
        value = value[1:-1]
    return value or None


def _parse_params(text: str) -> dict[str, str]:
    """Split ``key:value`` pairs in any order; later duplicates are ignored."""

    params: dict[str, str] = {}
    matches = list(_PARAM_KEY.finditer(text))
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        key = match.group("key").lower()
        value = _clean_value(text[match.end():end])
        if value is not None and key not in params:
            params[key] = value
    return params


def _line_index(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.isdigit():
        return None
    return int(raw) - 1


def parse_action(text: str) -> tuple[ActionIntent, str]:
    """Return the action intent carried by ``text`` and its user-visible form.

    Only the first marker is honoured. Its content is everything after the
    marker; the visible text keeps that content and drops only the marker.
    Text without a marker comes back unchanged with an empty intent.
    """

    match = ACTION_MARKER.search(text)
    if match is None:
        return ActionIntent(), text

    params = _parse_params(match.group("params"))
    intent = ActionIntent(
        type=ActionType(match.group("type").lower()),
        filename=params.get("filename"),
        content=text[match.end():].strip(),
        pattern=params.get("pattern"),
        start_line=_line_index(params.get("startline")),
        end_line=_line_index(params.get("endline")),
    )
    stripped = (text[:match.start()] + text[match.end():]).strip()
    logger.debug("Parsed %s action for '%s'", intent.type.value, intent.filename)
    return intent, stripped


# ------------------------------------------------------------------
# Request kind heuristics
# ------------------------------------------------------------------

_CREATE_PHRASES = (
    "create a new file", "create file", "make a new file", "new file called",
    "create a file named", "start a file called", "make a file called",
    "create the file", "make a file named", "generate a new file", "start a new file",
    "create a file called", "new file named", "set up a new file", "create new file",
    "create a document called", "make a document named", "new document called",
    "make a note file called", "make a new note called", "create a blank file called",
    "make a fresh file", "create and name it", "make a file and call it",
)

_DELETE_PHRASES = (
    "delete file", "remove file", "delete the file", "erase the file",
    "get rid of the file", "delete this file", "remove this file", "erase this file",
    "wipe out the file", "get rid of this file", "trash the file", "discard the file",
    "delete that file", "remove that file", "delete my file", "remove my file",
    "throw away the file", "scrap the file", "delete the document",
    "remove the document", "erase the document",
)

_REMOVE_CONTENT_PHRASES = (
    "remove section", "delete section", "remove the section", "delete the section",
    "remove paragraph", "delete paragraph", "remove the paragraph", "delete the paragraph",
    "remove content", "delete content", "remove the content", "delete the content",
    "remove this section", "delete this section", "erase the section",
    "remove this paragraph", "delete this paragraph", "remove text", "delete text",
    "erase text", "remove this text", "delete this text", "remove line", "delete line",
    "remove the line", "delete the line", "remove this line", "delete this line",
    "cut out the section", "cut the paragraph", "take out the content",
    "strip out this text", "remove part about", "delete part about",
    "erase the part about", "remove the bit about", "delete the bit about",
)


def detect_request_kind(message: str) -> ActionType:
    """Guess which document action a user message asks for.

    This is a phrase-list heuristic used only to hint the model. Content
    removal is checked before whole-file deletion since its phrases are the
    more specific ones.
    """

    lowered = (message or "").lower()
    if any(phrase in lowered for phrase in _REMOVE_CONTENT_PHRASES):
        return ActionType.REMOVE_CONTENT
    if any(phrase in lowered for phrase in _DELETE_PHRASES):
        return ActionType.DELETE
    if any(phrase in lowered for phrase in _CREATE_PHRASES):
        return ActionType.CREATE
    return ActionType.NONE
