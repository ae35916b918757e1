"""Acceptance checks for content and for the built site."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any, Mapping

import feedparser

from blog.models.post import Post
from blog.models.site import SiteConfig
from blog.services.builder import TAXONOMIES, group_terms
from blog.services.content import ContentLoader
from blog.services.feed import FEED_FILENAME, last_build_date, sort_by_publish_date

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckReport:
    """Errors and warnings gathered by a check run."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: "CheckReport") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def _struct_to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime(*value[:6], tzinfo=timezone.utc)


def _truncate_seconds(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(microsecond=0)


def check_content(content_dir: Path) -> CheckReport:
    """Verify every Markdown file has parseable front matter with a title and a date."""

    report = CheckReport()
    loaded = ContentLoader(content_dir).load()
    report.errors.extend(loaded.errors)
    if not loaded.posts and not loaded.errors:
        report.warnings.append(f"No posts found under {content_dir}")
    return report


def check_feed(document: str | bytes, posts: Sequence[Post], *, base_url: str, limit: int = -1) -> CheckReport:
    """Check an RSS document against the posts it is expected to list.

    The feed must be well-formed, hold one item per post in reverse
    chronological order, and advertise the newest ``lastmod`` as its
    ``lastBuildDate``.
    """

    report = CheckReport()
    parsed = feedparser.parse(document)
    if parsed.bozo and parsed.bozo_exception is not None:  # type: ignore[attr-defined]
        report.errors.append(f"Feed is not well-formed: {parsed.bozo_exception}")
        return report

    if parsed.get("version") != "rss20":
        report.errors.append(f"Expected an RSS 2.0 document, found {parsed.get('version') or 'unknown'}")

    expected = sort_by_publish_date(posts)
    if limit > 0:
        expected = expected[:limit]

    entries = list(parsed.entries)
    if len(entries) != len(expected):
        report.errors.append(f"Feed lists {len(entries)} item(s); expected {len(expected)}")

    expected_links = [post.permalink(base_url) for post in expected]
    actual_links = [entry.get("link", "") for entry in entries]
    if len(entries) == len(expected) and actual_links != expected_links:
        report.errors.append("Feed items are not in reverse-chronological publish order")

    for entry in entries:
        if entry.get("id") and entry.get("link") and entry.get("id") != entry.get("link"):
            report.errors.append(f"Item guid {entry.get('id')} does not match its link {entry.get('link')}")

    expected_build_date = last_build_date(posts)
    actual_build_date = _struct_to_datetime(parsed.feed.get("updated_parsed"))
    if expected_build_date is None:
        if actual_build_date is not None:
            report.warnings.append("Feed declares a lastBuildDate although it lists no pages")
    elif actual_build_date is None:
        report.errors.append("Feed is missing lastBuildDate")
    elif actual_build_date != _truncate_seconds(expected_build_date):
        report.errors.append(
            f"lastBuildDate {actual_build_date.isoformat()} does not match newest lastmod "
            f"{_truncate_seconds(expected_build_date).isoformat()}"
        )

    return report


def _expected_feeds(posts: Sequence[Post]) -> list[tuple[str, list[Post]]]:
    """Return every feed the build writes with the posts it must list."""

    feeds: list[tuple[str, list[Post]]] = [(FEED_FILENAME, list(posts))]
    sections: dict[str, list[Post]] = {}
    for post in posts:
        if post.section:
            sections.setdefault(post.section, []).append(post)
    feeds.extend((f"{section}/{FEED_FILENAME}", section_posts) for section, section_posts in sorted(sections.items()))
    for taxonomy in TAXONOMIES:
        feeds.extend(
            (f"{taxonomy}/{term.slug}/{FEED_FILENAME}", term.posts) for term in group_terms(posts, taxonomy)
        )
    return feeds


def check_output(
    config: SiteConfig,
    *,
    clock: Callable[[], datetime] | None = None,
) -> CheckReport:
    """Run the content checks, then verify the built pages and every feed against the content."""

    report = check_content(config.content_dir)
    if not report.ok:
        return report

    output_dir = config.output_dir
    if not (output_dir / "index.html").is_file():
        report.errors.append(f"{output_dir / 'index.html'} is missing; run the build first")
        return report

    now = (clock or (lambda: datetime.now(timezone.utc)))()
    posts = [
        post
        for post in ContentLoader(config.content_dir).load().posts
        if post.is_published(now, include_drafts=config.build_drafts, include_future=config.build_future)
    ]
    for relative, feed_posts in _expected_feeds(posts):
        feed_path = output_dir / relative
        if not feed_path.is_file():
            report.errors.append(f"{feed_path} is missing")
            continue
        feed_report = check_feed(feed_path.read_bytes(), feed_posts, base_url=config.base_url, limit=config.rss_limit)
        report.errors.extend(f"{relative}: {error}" for error in feed_report.errors)
        report.warnings.extend(f"{relative}: {warning}" for warning in feed_report.warnings)

    for post in posts:
        if not (output_dir / post.output_path).is_file():
            report.errors.append(f"{post.relative_url} was not rendered")

    return report


def summarize_report(report: CheckReport, *, logger: logging.Logger | None = None) -> Mapping[str, int]:
    """Log every finding and return counts keyed by severity."""

    log = logger or LOGGER
    for warning in report.warnings:
        log.warning(warning)
    for error in report.errors:
        log.error(error)
    return {"errors": len(report.errors), "warnings": len(report.warnings)}
