"""Utilities for working with post text."""
from __future__ import annotations

import re
import unicodedata
from typing import Any


_MARKDOWN_HEADING_RE = re.compile(r"(^|\n)#{1,6}\s*")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(([^)]+)\)")
_MARKDOWN_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
_MARKDOWN_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_MARKDOWN_EMPHASIS_RE = re.compile(r"([*_]{1,3})([^*_]+)\1")
_BLOCKQUOTE_RE = re.compile(r"(^|\n)>\s*")
_HTML_TAG_RE = re.compile(r"<[^>]+>")

_SLUG_PATTERN = re.compile(r"[^\w]+", re.UNICODE)


def markdown_to_plain_text(value: Any) -> str:
    """Convert basic Markdown content into a plain text snippet.

    Headings, links, images, emphasis markers, inline code and raw HTML tags
    are removed and whitespace is normalised. Fenced code blocks are dropped
    entirely so that summaries never start in the middle of a listing.
    Non-string inputs return an empty string to keep template rendering
    predictable.
    """

    if not isinstance(value, str):
        return ""

    text = value
    text = _MARKDOWN_CODE_BLOCK_RE.sub(" ", text)
    text = _MARKDOWN_IMAGE_RE.sub(" ", text)
    text = _MARKDOWN_LINK_RE.sub(r"\1", text)
    text = _MARKDOWN_INLINE_CODE_RE.sub(r"\1", text)
    text = _MARKDOWN_HEADING_RE.sub(r"\1", text)
    text = _MARKDOWN_EMPHASIS_RE.sub(r"\2", text)
    text = _BLOCKQUOTE_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub(" ", text)

    # List markers would otherwise leak into the start of the summary.
    text = re.sub(r"(^|\n)[\-*+]\s+", r"\1", text)
    text = re.sub(r"(^|\n)\d+\.\s+", r"\1", text)

    text = text.replace("\r", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def truncate_words(text: str, limit: int) -> str:
    """Return the first ``limit`` words of ``text``; a non-positive limit keeps everything."""

    words = text.split()
    if limit <= 0 or len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + " …"


def slugify(value: str, *, fallback: str = "post") -> str:
    """Return a filesystem and URL friendly slug for the given value."""

    normalised = unicodedata.normalize("NFKC", value).lower()
    normalised = _SLUG_PATTERN.sub("-", normalised)
    normalised = normalised.replace("_", "-").strip("-")
    normalised = re.sub(r"-{2,}", "-", normalised)
    return normalised or fallback


__all__ = ["markdown_to_plain_text", "slugify", "truncate_words"]
