"""Loader that turns the Markdown files under the content directory into posts."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import tomllib
from typing import Any

import yaml

from blog.models.post import FrontMatterError, Post

LOGGER = logging.getLogger(__name__)

_FENCES: dict[str, str] = {"---": "yaml", "+++": "toml"}
_SECTION_STUB = "_index.md"


@dataclass(slots=True)
class LoadResult:
    """Posts read from disk together with per-file errors."""

    posts: list[Post] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors


def split_front_matter(text: str, *, path: Path | None = None) -> tuple[dict[str, Any], str]:
    """Split a Markdown document into its front-matter mapping and body.

    YAML front matter is fenced by ``---`` lines and TOML front matter by
    ``+++`` lines. Documents without a fence, or whose fence is never
    closed, raise :class:`FrontMatterError`.
    """

    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines(keepends=True)
    if not lines:
        raise FrontMatterError("file is empty", path=path)

    fence = lines[0].strip()
    kind = _FENCES.get(fence)
    if kind is None:
        raise FrontMatterError("missing front matter", path=path)

    end = None
    for index in range(1, len(lines)):
        if lines[index].strip() == fence:
            end = index
            break
    if end is None:
        raise FrontMatterError(f"unterminated front matter (expected closing '{fence}')", path=path)

    raw_metadata = "".join(lines[1:end])
    body = "".join(lines[end + 1 :]).lstrip("\r\n")

    if kind == "yaml":
        try:
            metadata = yaml.safe_load(raw_metadata)
        except yaml.YAMLError as exc:
            raise FrontMatterError(f"invalid YAML front matter: {exc}", path=path) from exc
    else:
        try:
            metadata = tomllib.loads(raw_metadata)
        except tomllib.TOMLDecodeError as exc:
            raise FrontMatterError(f"invalid TOML front matter: {exc}", path=path) from exc

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise FrontMatterError("front matter must be a mapping", path=path)
    return metadata, body


def parse_post(text: str, *, path: Path | None = None, section: str = "posts") -> Post:
    """Parse a whole Markdown document into a :class:`Post`."""

    metadata, body = split_front_matter(text, path=path)
    return Post.from_front_matter(metadata, body, source_path=path, section=section)


class ContentLoader:
    """Read every post below ``content_dir``."""

    def __init__(self, content_dir: Path) -> None:
        self._content_dir = Path(content_dir)

    @property
    def content_dir(self) -> Path:
        return self._content_dir

    def iter_markdown_files(self) -> list[Path]:
        """Return the Markdown files that represent pages, in a stable order."""

        if not self._content_dir.is_dir():
            return []
        return sorted(
            path
            for path in self._content_dir.rglob("*.md")
            if path.is_file() and path.name != _SECTION_STUB
        )

    def load(self) -> LoadResult:
        """Parse all Markdown files, collecting errors rather than stopping at the first one."""

        result = LoadResult()
        if not self._content_dir.is_dir():
            message = f"Content directory '{self._content_dir}' does not exist"
            LOGGER.warning(message)
            result.errors.append(message)
            return result

        seen_urls: dict[str, Path] = {}
        for path in self.iter_markdown_files():
            relative = path.relative_to(self._content_dir)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                message = f"{relative}: could not read file: {exc}"
                LOGGER.warning(message)
                result.errors.append(message)
                continue

            try:
                post = parse_post(text, path=path, section=self._section_for(relative))
            except FrontMatterError as exc:
                message = f"{relative}: {exc.reason}"
                LOGGER.warning(message)
                result.errors.append(message)
                continue

            previous = seen_urls.get(post.relative_url)
            if previous is not None:
                message = (
                    f"{relative}: permalink {post.relative_url} already used by "
                    f"{previous.relative_to(self._content_dir)}"
                )
                LOGGER.warning(message)
                result.errors.append(message)
                continue

            seen_urls[post.relative_url] = path
            result.posts.append(post)

        LOGGER.info("Loaded %d post(s) from %s", len(result.posts), self._content_dir)
        return result

    @staticmethod
    def _section_for(relative: Path) -> str:
        """Return the first directory of ``relative``; top-level files have no section."""

        parts = relative.parts
        return parts[0] if len(parts) > 1 else ""
