"""Markdown rendering, summary extraction and the Jinja2 page templates."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
import re
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, pass_context, select_autoescape
import markdown as markdown_lib

from blog.models.post import Post
from blog.models.site import SiteConfig
from blog.utils.text import markdown_to_plain_text, slugify, truncate_words


TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"

MARKDOWN_EXTENSIONS: tuple[str, ...] = ("fenced_code", "tables", "toc", "sane_lists")
SUMMARY_DIVIDER_RE = re.compile(r"<!--\s*more\s*-->", re.IGNORECASE)


def render_markdown(text: str) -> str:
    """Convert Markdown source into an HTML fragment."""

    if not text:
        return ""
    return markdown_lib.markdown(text, extensions=list(MARKDOWN_EXTENSIONS), output_format="html")


def summarize(post: Post, summary_length: int = 70) -> str:
    """Return the plain-text summary for ``post``.

    An explicit ``summary`` in the front matter wins; otherwise the text
    before a ``<!--more-->`` divider is used, and failing that the first
    ``summary_length`` words of the body.
    """

    if post.summary:
        return post.summary

    parts = SUMMARY_DIVIDER_RE.split(post.body, maxsplit=1)
    if len(parts) > 1:
        return markdown_to_plain_text(parts[0])

    return truncate_words(markdown_to_plain_text(post.body), summary_length)


def rfc822(value: datetime | None) -> str:
    """Format ``value`` as an RSS ``pubDate`` (``Mon, 02 Jan 2006 15:04:05 -0700``)."""

    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


def isodate(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat()


@pass_context
def _absurl(context: Any, path: str) -> str:
    site = context.get("site")
    if isinstance(site, SiteConfig):
        return site.absolute_url(path)
    return path


def configure_environment(env: Environment) -> Environment:
    """Register the filters and globals every template relies on."""

    env.filters["markdown"] = render_markdown
    env.filters["markdown_to_text"] = markdown_to_plain_text
    env.filters["rfc822"] = rfc822
    env.filters["isodate"] = isodate
    env.filters["absurl"] = _absurl
    env.filters["slugify"] = slugify
    env.globals.update(now=lambda: datetime.now(timezone.utc))
    return env


def create_environment(template_dir: Path | None = None) -> Environment:
    """Return a Jinja2 environment loading templates from ``template_dir``."""

    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    return configure_environment(env)


class SiteRenderer:
    """Render the HTML pages of the site from posts and configuration."""

    def __init__(self, config: SiteConfig, env: Environment | None = None) -> None:
        self._config = config
        self._env = env or create_environment()

    def page_context(self, posts: Sequence[Post] = ()) -> list[dict[str, Any]]:
        """Project posts into the dictionaries consumed by list templates."""

        return [
            {
                "title": post.title,
                "url": post.relative_url,
                "permalink": post.permalink(self._config.base_url),
                "date": post.date,
                "lastmod": post.lastmod,
                "summary": summarize(post, self._config.summary_length),
                "tags": post.tags,
                "categories": post.categories,
                "cover": post.cover,
                "draft": post.draft,
            }
            for post in posts
        ]

    def render_index(self, posts: Sequence[Post]) -> str:
        return self._render(
            "index.html",
            title=self._config.title,
            pages=self.page_context(posts),
            feed_url=self._config.feed_url,
        )

    def post_context(self, post: Post) -> dict[str, Any]:
        """Return the template variables of a single post page."""

        return {
            "title": post.title,
            "page": self.page_context([post])[0],
            "content": render_markdown(SUMMARY_DIVIDER_RE.sub("", post.body)),
        }

    def render_post(self, post: Post) -> str:
        return self._render("single.html", feed_url=self._config.feed_url, **self.post_context(post))

    def render_list(self, title: str, posts: Sequence[Post], *, feed_path: str) -> str:
        return self._render(
            "list.html",
            title=title,
            pages=self.page_context(posts),
            feed_url=self._config.absolute_url(feed_path),
        )

    def render_terms(self, taxonomy: str, terms: Sequence[tuple[str, str, int]]) -> str:
        """Render the overview of a taxonomy; ``terms`` holds ``(name, url, count)`` tuples."""

        return self._render(
            "terms.html",
            title=taxonomy.capitalize(),
            taxonomy=taxonomy,
            terms=[{"name": name, "url": url, "count": count} for name, url, count in terms],
            feed_url=self._config.feed_url,
        )

    def render_not_found(self) -> str:
        return self._render("404.html", title="Page not found", feed_url=self._config.feed_url)

    def render_sitemap(self, entries: Sequence[tuple[str, datetime | None]]) -> str:
        return self._render(
            "sitemap.xml",
            entries=[{"loc": loc, "lastmod": lastmod} for loc, lastmod in entries],
        )

    def _render(self, template_name: str, **context: Any) -> str:
        template = self._env.get_template(template_name)
        return template.render(site=self._config, **context)
