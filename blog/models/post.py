"""Domain models for blog posts and the feed items projected from them."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from blog.utils.text import slugify


_KNOWN_KEYS = frozenset(
    {
        "title",
        "date",
        "lastmod",
        "tags",
        "categories",
        "cover",
        "draft",
        "url",
        "slug",
        "summary",
    }
)


class FrontMatterError(ValueError):
    """Raised when a post's front matter is missing or cannot be interpreted."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        self.reason = message
        super().__init__(f"{path}: {message}" if path is not None else message)


def _parse_datetime(value: Any) -> datetime | None:
    """Coerce a string/date/datetime value into a timezone-aware UTC datetime."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _listify_strings(value: Any, *, key: str, path: Path | None) -> list[str]:
    """Normalise a string or a sequence of strings into a list of non-empty strings."""

    if value is None:
        return []

    if isinstance(value, str):
        trimmed = value.strip()
        return [trimmed] if trimmed else []

    if isinstance(value, Sequence):
        result: list[str] = []
        for item in value:
            if isinstance(item, (str, int, float)) and not isinstance(item, bool):
                trimmed = str(item).strip()
                if trimmed and trimmed not in result:
                    result.append(trimmed)
            else:
                raise FrontMatterError(f"'{key}' entries must be strings", path=path)
        return result

    raise FrontMatterError(f"'{key}' must be a string or a list of strings", path=path)


def _parse_bool(value: Any, *, key: str, path: Path | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "on", "1"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "off", "0", ""}:
        return False
    raise FrontMatterError(f"'{key}' must be a boolean", path=path)


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _normalise_url_path(value: str) -> str:
    """Return ``value`` with exactly one leading slash and a trailing slash for directories."""

    path = "/" + value.strip().lstrip("/")
    last_segment = path.rsplit("/", 1)[-1]
    if not path.endswith("/") and "." not in last_segment:
        path += "/"
    return path


def _default_slug(source_path: Path | None) -> str:
    if source_path is None:
        return "post"
    if source_path.stem == "index":
        return slugify(source_path.parent.name)
    return slugify(source_path.stem)


@dataclass(slots=True)
class Post:
    """A Markdown article together with the metadata declared in its front matter."""

    title: str
    date: datetime
    body: str
    slug: str
    section: str = "posts"
    lastmod: datetime | None = None
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    cover: str | None = None
    draft: bool = False
    url: str | None = None
    summary: str | None = None
    source_path: Path | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.lastmod is None:
            self.lastmod = self.date

    @classmethod
    def from_front_matter(
        cls,
        metadata: Mapping[str, Any],
        body: str,
        *,
        source_path: Path | None = None,
        section: str = "posts",
    ) -> "Post":
        """Validate ``metadata`` and build a :class:`Post`."""

        if not isinstance(metadata, Mapping):
            raise FrontMatterError("front matter must be a mapping", path=source_path)

        title = metadata.get("title")
        if not isinstance(title, str) or not title.strip():
            raise FrontMatterError("missing required 'title'", path=source_path)

        raw_date = metadata.get("date")
        if raw_date is None:
            raise FrontMatterError("missing required 'date'", path=source_path)
        published = _parse_datetime(raw_date)
        if published is None:
            raise FrontMatterError(f"invalid 'date' value: {raw_date!r}", path=source_path)

        lastmod = published
        raw_lastmod = metadata.get("lastmod")
        if raw_lastmod is not None:
            lastmod = _parse_datetime(raw_lastmod)
            if lastmod is None:
                raise FrontMatterError(f"invalid 'lastmod' value: {raw_lastmod!r}", path=source_path)

        explicit_slug = _optional_str(metadata.get("slug"))
        url = _optional_str(metadata.get("url"))

        return cls(
            title=title.strip(),
            date=published,
            lastmod=lastmod,
            body=body,
            slug=slugify(explicit_slug) if explicit_slug else _default_slug(source_path),
            section=section,
            tags=_listify_strings(metadata.get("tags"), key="tags", path=source_path),
            categories=_listify_strings(metadata.get("categories"), key="categories", path=source_path),
            cover=_optional_str(metadata.get("cover")),
            draft=_parse_bool(metadata.get("draft"), key="draft", path=source_path),
            url=_normalise_url_path(url) if url else None,
            summary=_optional_str(metadata.get("summary")),
            source_path=source_path,
            extra={key: value for key, value in metadata.items() if key not in _KNOWN_KEYS},
        )

    @property
    def relative_url(self) -> str:
        """Site-relative URL of the rendered page, honouring a ``url`` override."""

        if self.url:
            return self.url
        if self.section:
            return f"/{self.section}/{self.slug}/"
        return f"/{self.slug}/"

    @property
    def output_path(self) -> Path:
        """Path of the rendered HTML file relative to the output directory."""

        relative = self.relative_url.lstrip("/")
        if not relative or relative.endswith("/"):
            return Path(relative) / "index.html"
        return Path(relative)

    def permalink(self, base_url: str) -> str:
        return base_url.rstrip("/") + self.relative_url

    def is_published(
        self,
        now: datetime | None = None,
        *,
        include_drafts: bool = False,
        include_future: bool = False,
    ) -> bool:
        """Return ``True`` when the post belongs in a build made at ``now``."""

        if self.draft and not include_drafts:
            return False
        if include_future:
            return True
        reference = now or datetime.now(timezone.utc)
        return self.date <= reference


@dataclass(slots=True)
class FeedItem:
    """One ``<item>`` of an RSS document derived from a single post."""

    title: str
    link: str
    pub_date: datetime
    description: str
    guid: str = ""

    def __post_init__(self) -> None:
        if not self.guid:
            self.guid = self.link

    @classmethod
    def from_post(cls, post: Post, *, base_url: str, description: str) -> "FeedItem":
        link = post.permalink(base_url)
        return cls(title=post.title, link=link, pub_date=post.date, description=description, guid=link)
