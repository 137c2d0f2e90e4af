"""
kube_assistant/utils/content_utils.py

Helpers for cleaning tool output before it is re-sent to a model.

Contains:
- sanitize: JSON round-trip for JSON payloads, HTML tag stripping otherwise
- truncate_content: byte-budgeted truncation with an explicit marker
- parse_json_object: lenient JSON object decoding
- parse_suggestions: split the trailing "SUGGESTIONS:" line off an assistant reply
"""

import json
import re
from html.parser import HTMLParser
from typing import Any

TRUNCATION_MARKER = " [truncated]"

_MAX_UNSANITIZABLE_CHARS = 5000

MAX_SUGGESTIONS = 3

_SUGGESTIONS_PATTERN = re.compile(r"SUGGESTIONS:\s*(.+?)(?:\n|$)", re.IGNORECASE)
_MARKDOWN_REPLACEMENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"__(.*?)__"), r"\1"),
    (re.compile(r"_(.*?)_"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"~~(.*?)~~"), r"\1"),
    (re.compile(r"\s+"), " "),
    (re.compile(r"^\s*[-*+]\s+"), ""),
    (re.compile(r"^\s*\d+\.\s+"), ""),
    (re.compile(r"^\s*>+\s+"), ""),
    (re.compile(r"^\[|\]$"), ""),
]


class _HTMLToText(HTMLParser):
    """
    Minimal HTML-to-text converter using stdlib HTMLParser.

    Drops every tag and attribute, keeps text. Skips <script> and <style> content.
    """

    _SKIP_TAGS = {"script", "style"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag.lower() in self._SKIP_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag.lower() in self._SKIP_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if self._skip_depth == 0:
            self._parts.append(data)

    def get_text(self) -> str:
        return "".join(self._parts)


_TAG_PATTERN = re.compile(r"<[a-zA-Z/!][^>]*>")


def _looks_like_json(content: str) -> bool:
    stripped = content.strip()
    return (
        (stripped.startswith("{") and stripped.endswith("}"))
        or (stripped.startswith("[") and stripped.endswith("]"))
    )


def sanitize(content: str) -> str:
    """
    Clean tool output before sending it to a model.

    JSON payloads are parsed and re-serialized compactly. Anything else has its
    HTML tags stripped. Content that cannot be processed is cut to a safe length.

    Args:
        content: Raw tool output.

    Returns:
        The sanitized content.
    """
    if not content:
        return ""

    if _looks_like_json(content):
        try:
            return json.dumps(json.loads(content), ensure_ascii=False)
        except json.JSONDecodeError:
            pass

    if not _TAG_PATTERN.search(content):
        return content

    parser = _HTMLToText()
    try:
        parser.feed(content)
        parser.close()
    except (AssertionError, ValueError):
        return content[:_MAX_UNSANITIZABLE_CHARS]
    return parser.get_text()


def truncate_content(content: str, max_bytes: int) -> str:
    """
    Cut content to at most `max_bytes` UTF-8 bytes, appending TRUNCATION_MARKER when cut.

    The result is never longer than `max_bytes + len(TRUNCATION_MARKER)`.

    Args:
        content: The content to cut.
        max_bytes: Byte budget for the content (the marker is not counted).

    Returns:
        The content unchanged if it fits, otherwise the cut content plus the marker.
    """
    encoded = content.encode("utf-8")
    if len(encoded) <= max_bytes:
        return content
    head = encoded[:max(max_bytes, 0)].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER


def parse_json_object(content: str) -> dict[str, Any] | None:
    """Decode `content` as a JSON object, returning None for anything else."""
    try:
        parsed = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def markdown_to_plain_text(markdown: str) -> str:
    """Strip inline markdown, list markers and surrounding brackets from a short snippet."""
    text = markdown
    for pattern, replacement in _MARKDOWN_REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text.strip()


def parse_suggestions(content: str) -> tuple[str, list[str]]:
    """
    Split the follow-up suggestions line off an assistant reply.

    The system prompt asks the model to end with `SUGGESTIONS: [q1] | [q2] | [q3]`.
    The first such line is removed from the content and its items are returned as plain
    text, at most MAX_SUGGESTIONS of them.

    Args:
        content: The assistant reply.

    Returns:
        Tuple of (content without the suggestions line, suggestions).
    """
    match = _SUGGESTIONS_PATTERN.search(content)
    if match is None:
        return content, []

    suggestions = [markdown_to_plain_text(item.strip()) for item in match.group(1).split("|")]
    suggestions = [suggestion for suggestion in suggestions if suggestion][:MAX_SUGGESTIONS]
    clean_content = (content[:match.start()] + content[match.end():]).strip()
    return clean_content, suggestions
