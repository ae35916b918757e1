"""RSS 2.0 feed generation for the home page, sections and taxonomy terms."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
import logging

from jinja2 import Environment

from blog.models.post import FeedItem, Post
from blog.models.site import SiteConfig
from blog.services.renderer import create_environment, summarize

LOGGER = logging.getLogger(__name__)

FEED_TEMPLATE = "rss.xml"
FEED_FILENAME = "index.xml"


def sort_by_publish_date(posts: Iterable[Post]) -> list[Post]:
    """Return ``posts`` newest first; titles break ties so the order is stable."""

    by_title = sorted(posts, key=lambda post: post.title.lower())
    return sorted(by_title, key=lambda post: post.date, reverse=True)


def last_build_date(posts: Iterable[Post]) -> datetime | None:
    """Return the most recent ``lastmod`` among ``posts``."""

    dates = [post.lastmod for post in posts if post.lastmod is not None]
    return max(dates) if dates else None


def build_feed_items(
    posts: Iterable[Post],
    base_url: str,
    *,
    summary_length: int = 70,
    limit: int = -1,
) -> list[FeedItem]:
    """Project ``posts`` into feed items in reverse-chronological publish order.

    ``limit`` caps the number of items; zero or a negative value keeps them all.
    """

    ordered = sort_by_publish_date(posts)
    if limit > 0:
        ordered = ordered[:limit]
    return [
        FeedItem.from_post(post, base_url=base_url, description=summarize(post, summary_length))
        for post in ordered
    ]


def render_feed(
    config: SiteConfig,
    posts: Sequence[Post],
    *,
    feed_path: str = FEED_FILENAME,
    title: str | None = None,
    link_path: str = "/",
    env: Environment | None = None,
) -> str:
    """Render the RSS document listing ``posts``.

    ``feed_path`` is the site-relative location of the document itself and
    feeds the ``atom:link rel="self"`` element; ``link_path`` is the HTML
    page the channel describes.
    """

    environment = env or create_environment()
    items = build_feed_items(
        posts,
        config.base_url,
        summary_length=config.summary_length,
        limit=config.rss_limit,
    )
    channel_title = config.title if not title else f"{title} on {config.title}"
    template = environment.get_template(FEED_TEMPLATE)
    LOGGER.debug("Rendering feed %s with %d item(s)", feed_path, len(items))
    return template.render(
        site=config,
        title=channel_title,
        link=config.absolute_url(link_path),
        description=f"Recent content {('in ' + title + ' ') if title else ''}on {config.title}",
        feed_url=config.absolute_url(feed_path),
        last_build_date=last_build_date(posts),
        items=items,
    )
