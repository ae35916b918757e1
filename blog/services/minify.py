"""Whitespace and comment minification applied to rendered HTML and XML."""
from __future__ import annotations

import re


_PRESERVED_BLOCK_RE = re.compile(
    r"<(pre|code|textarea|script|style)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT_RE = re.compile(r"<!--(?!\[if).*?-->", re.DOTALL)
_BETWEEN_TAGS_RE = re.compile(r">\s+<")
_BLOCK_TAGS = (
    "!doctype|html|head|body|title|meta|link|header|footer|main|nav|section|article|aside|div|p|"
    "ul|ol|li|dl|dt|dd|table|caption|thead|tbody|tfoot|tr|th|td|h[1-6]|blockquote|pre|hr|"
    "figure|figcaption|form|fieldset|details|summary"
)
_BLOCK_TAG = rf"</?(?:{_BLOCK_TAGS})\b[^>]*>"
_SPACE_AFTER_BLOCK_RE = re.compile(rf"({_BLOCK_TAG})\s+", re.IGNORECASE)
_SPACE_BEFORE_BLOCK_RE = re.compile(rf"\s+({_BLOCK_TAG})", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_PLACEHOLDER = "<\x00{}\x00>"
_PLACEHOLDER_RE = re.compile(r"<\x00(\d+)\x00>")


def _shelve(text: str) -> tuple[str, list[str]]:
    """Swap blocks whose whitespace is significant for numbered placeholders."""

    shelved: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        shelved.append(match.group(0))
        return _PLACEHOLDER.format(len(shelved) - 1)

    return _PRESERVED_BLOCK_RE.sub(_stash, text), shelved


def _restore(text: str, shelved: list[str]) -> str:
    return _PLACEHOLDER_RE.sub(lambda match: shelved[int(match.group(1))], text)


def minify_html(text: str) -> str:
    """Collapse insignificant whitespace and drop comments from an HTML document.

    Whitespace next to block-level tags is removed; elsewhere it is a word
    space and collapses to a single blank.
    """

    body, shelved = _shelve(text)
    body = _COMMENT_RE.sub("", body)
    body = _SPACE_AFTER_BLOCK_RE.sub(r"\1", body)
    body = _SPACE_BEFORE_BLOCK_RE.sub(r"\1", body)
    body = _WHITESPACE_RE.sub(" ", body)
    return _restore(body.strip(), shelved)


def minify_xml(text: str) -> str:
    """Collapse whitespace between XML elements; character data is left intact."""

    body = _COMMENT_RE.sub("", text)
    body = _BETWEEN_TAGS_RE.sub("><", body)
    return body.strip()


def minify(text: str, *, filename: str) -> str:
    """Dispatch on the output file extension; unknown types are returned unchanged."""

    if filename.endswith((".html", ".htm")):
        return minify_html(text)
    if filename.endswith(".xml"):
        return minify_xml(text)
    return text
