"""Prompt assembly for the chat pipeline."""

from __future__ import annotations

from typing import Iterable, Optional

from notepilot.models import ActionType, ChatMessage, MessageRole

__all__ = ["build_system_prompt", "build_prompt"]

_OPERATIONS_GUIDE = """\
You can assist the user with document operations such as:
- Writing content to any document
- Creating new documents
- Deleting documents
- Removing specific content from documents

Carefully analyse the user's intent. When they imply a wish to add information to their \
notes, create a document, remove something or modify content, treat it as a document \
operation and use the matching marker.

Distinctions:
- Use [ACTION:delete] only when the user wants to delete an entire document
- Use [ACTION:remove_content] when the user wants to remove specific content within a document

If your answer contains content that belongs in a document (notes, code, outlines), use \
[ACTION:write] or [ACTION:create] rather than only showing the content.

Always include the filename the user mentioned, with the {extension} extension. If no \
filename is given, infer one from the topic.

Marker format:
- Writing to a document: [ACTION:write filename:file-to-write{extension}]<content to write>
- Creating a document: [ACTION:create filename:suggested-filename{extension}]<content for the document>
- Deleting a document: [ACTION:delete filename:document-to-delete{extension}]
- Removing content: [ACTION:remove_content filename:target{extension} pattern:"text to match" startLine:X endLine:Y]

Line numbers start at 1. Place the marker at the beginning of your response, then phrase \
the visible response naturally. The marker itself is hidden from the user."""

_KIND_HINTS = {
    ActionType.CREATE: "The user's message looks like a request to create a new document.",
    ActionType.DELETE: "The user's message looks like a request to delete a whole document.",
    ActionType.REMOVE_CONTENT: "The user's message looks like a request to remove content from a document.",
}


def build_system_prompt(
    document_name: Optional[str],
    document_content: Optional[str],
    *,
    extension: str = ".md",
    request_kind: ActionType = ActionType.NONE,
) -> str:
    if document_name:
        intro = (
            "You are a writing assistant. The user is currently viewing a document named "
            f'"{document_name}" with the following content:\n\n{document_content or ""}'
        )
    else:
        intro = "You are a writing assistant. The user is not currently viewing any document."

    parts = [intro, _OPERATIONS_GUIDE.format(extension=extension)]
    hint = _KIND_HINTS.get(request_kind)
    if hint:
        parts.append(hint)
    return "\n\n".join(parts)


def build_prompt(system_prompt: str, history: Iterable[ChatMessage], user_message: ChatMessage) -> str:
    """Render the system prompt and the conversation as one prompt string."""

    lines = [
        f"{'User' if message.role is MessageRole.USER else 'Assistant'}: {message.content}"
        for message in [*history, user_message]
    ]
    return f"{system_prompt}\n\n" + "\n".join(lines) + "\n"
