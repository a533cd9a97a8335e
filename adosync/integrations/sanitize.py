"""HTML to plain text conversion for Azure DevOps rich-text fields.

System.Description and Microsoft.VSTS.Common.AcceptanceCriteria arrive as
HTML. The canvas renders plain text only, so scripts and inline event
handlers are dropped, block and line-break tags become newlines, list items
become bullets, remaining tags are stripped and entities are decoded.
"""

from __future__ import annotations

import html
import re

BULLET = "•"

_SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_PATTERN = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_EVENT_HANDLER_PATTERN = re.compile(
    r"""\s+on\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""",
    re.IGNORECASE,
)

# (pattern, replacement) applied in order
_BLOCK_REPLACEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"<p\b[^>]*>", re.IGNORECASE), ""),
    (re.compile(r"</p\s*>", re.IGNORECASE), "\n"),
    (re.compile(r"<div\b[^>]*>", re.IGNORECASE), ""),
    (re.compile(r"</div\s*>", re.IGNORECASE), "\n"),
    (re.compile(r"</?(?:ul|ol)\b[^>]*>", re.IGNORECASE), ""),
    (re.compile(r"<li\b[^>]*>", re.IGNORECASE), f"{BULLET} "),
    (re.compile(r"</li\s*>", re.IGNORECASE), "\n"),
)

_ANY_TAG_PATTERN = re.compile(r"<[^>]*>")
_BLANK_LINES_PATTERN = re.compile(r"\n\s*\n")
_BULLET_PREFIX_PATTERN = re.compile(rf"^(?:{BULLET}|[-*])\s+")


def sanitize_html(markup: str | None) -> str:
    """Convert Azure DevOps HTML to display-safe plain text.

    Args:
        markup: Raw HTML (None and empty string yield "")

    Returns:
        Plain text with one newline between blocks and no leading/trailing space
    """
    if not markup:
        return ""

    text = _SCRIPT_PATTERN.sub("", markup)
    text = _STYLE_PATTERN.sub("", text)
    text = _EVENT_HANDLER_PATTERN.sub("", text)

    for pattern, replacement in _BLOCK_REPLACEMENTS:
        text = pattern.sub(replacement, text)

    text = _ANY_TAG_PATTERN.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")

    text = _BLANK_LINES_PATTERN.sub("\n", text)
    return text.strip()


def extract_acceptance_criteria(markup: str | None) -> list[str]:
    """Split acceptance criteria HTML into individual criteria.

    Paragraphs, line breaks and list items each start a new criterion; bullet
    prefixes are dropped and empty fragments discarded. If splitting yields
    nothing the whole sanitized text is returned as a single criterion.
    """
    sanitized = sanitize_html(markup)
    if not sanitized:
        return []

    criteria = []
    for line in sanitized.split("\n"):
        criterion = _BULLET_PREFIX_PATTERN.sub("", line.strip()).strip()
        if criterion:
            criteria.append(criterion)

    return criteria or [sanitized]


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text to max_length characters, ending with "..." when cut."""
    if not text or len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


__all__ = [
    "sanitize_html",
    "extract_acceptance_criteria",
    "truncate_text",
]
