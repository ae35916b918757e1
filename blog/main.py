"""FastAPI preview server that renders the blog straight from the content directory."""

from __future__ import annotations

from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Protocol

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates

from blog.models.post import Post
from blog.models.site import ConfigError, SiteConfig
from blog.services.builder import TAXONOMIES, group_terms
from blog.services.content import ContentLoader
from blog.services.feed import render_feed, sort_by_publish_date
from blog.services.renderer import TEMPLATE_DIR, SiteRenderer, configure_environment

app = FastAPI(title="devblog preview")

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
configure_environment(templates.env)

logger = logging.getLogger(__name__)

RSS_MEDIA_TYPE = "application/rss+xml"


class PostRepository(Protocol):
    """Contract for retrieving the posts shown by the preview server."""

    def list_posts(self) -> list[Post]:
        """Return the posts that belong in the site, newest first."""


class FileContentRepository:
    """Re-read the content directory on every call so edits show up immediately."""

    def __init__(self, config: SiteConfig) -> None:
        self._config = config
        self._loader = ContentLoader(config.content_dir)

    def list_posts(self) -> list[Post]:
        result = self._loader.load()
        if result.errors:
            logger.warning(
                "Content has %d error(s); affected posts are hidden",
                len(result.errors),
                extra={"event": "preview.content_errors"},
            )
        posts = [
            post
            for post in result.posts
            if post.is_published(include_drafts=self._config.build_drafts, include_future=self._config.build_future)
        ]
        return sort_by_publish_date(posts)


@lru_cache(maxsize=1)
def get_config() -> SiteConfig:
    """Load the site configuration named by ``DEVBLOG_CONFIG`` (default ``site.yaml``)."""

    path = Path(os.getenv("DEVBLOG_CONFIG", "site.yaml"))
    try:
        return SiteConfig.load(path)
    except ConfigError:
        logger.exception("Invalid site configuration", extra={"event": "preview.config"})
        raise


def get_repository(config: SiteConfig = Depends(get_config)) -> PostRepository:
    return FileContentRepository(config)


def _preview_config(request: Request, config: SiteConfig) -> SiteConfig:
    """Point absolute links at the preview server instead of the production host."""

    return config.model_copy(update={"base_url": str(request.base_url)})


def _render_page(request: Request, template_name: str, config: SiteConfig, **context: object) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        template_name,
        {"site": config, "feed_url": config.feed_url, **context},
    )


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    config: SiteConfig = Depends(get_config),
    repository: PostRepository = Depends(get_repository),
) -> HTMLResponse:
    """Render the home page listing every post."""

    site = _preview_config(request, config)
    renderer = SiteRenderer(site, templates.env)
    return _render_page(request, "index.html", site, title=site.title, pages=renderer.page_context(repository.list_posts()))


@app.get("/index.xml")
async def home_feed(
    request: Request,
    config: SiteConfig = Depends(get_config),
    repository: PostRepository = Depends(get_repository),
) -> Response:
    site = _preview_config(request, config)
    document = render_feed(site, repository.list_posts(), env=templates.env)
    return Response(content=document, media_type=RSS_MEDIA_TYPE)


@app.get("/{taxonomy}/", response_class=HTMLResponse)
async def list_section_or_terms(
    request: Request,
    taxonomy: str,
    config: SiteConfig = Depends(get_config),
    repository: PostRepository = Depends(get_repository),
) -> HTMLResponse:
    """Render a taxonomy overview (``/tags/``) or a section listing (``/posts/``)."""

    site = _preview_config(request, config)
    posts = repository.list_posts()
    if taxonomy in TAXONOMIES:
        terms = [
            {"name": term.name, "url": f"/{taxonomy}/{term.slug}/", "count": len(term.posts)}
            for term in group_terms(posts, taxonomy)
        ]
        return _render_page(request, "terms.html", site, title=taxonomy.capitalize(), taxonomy=taxonomy, terms=terms)

    renderer = SiteRenderer(site, templates.env)
    section_posts = [post for post in posts if post.section == taxonomy]
    if not section_posts:
        page = next((post for post in posts if post.relative_url == f"/{taxonomy}/"), None)
        if page is None:
            raise HTTPException(status_code=404, detail="Section not found")
        return _render_page(request, "single.html", site, **renderer.post_context(page))

    return _render_page(
        request,
        "list.html",
        site,
        title=taxonomy.replace("-", " ").title(),
        pages=renderer.page_context(section_posts),
        feed_url=site.absolute_url(f"{taxonomy}/index.xml"),
    )


@app.get("/{section}/index.xml")
async def section_feed(
    request: Request,
    section: str,
    config: SiteConfig = Depends(get_config),
    repository: PostRepository = Depends(get_repository),
) -> Response:
    site = _preview_config(request, config)
    section_posts = [post for post in repository.list_posts() if post.section == section]
    if not section_posts:
        raise HTTPException(status_code=404, detail="Section not found")
    title = section.replace("-", " ").title()
    document = render_feed(
        site,
        section_posts,
        feed_path=f"{section}/index.xml",
        title=title,
        link_path=f"/{section}/",
        env=templates.env,
    )
    return Response(content=document, media_type=RSS_MEDIA_TYPE)


@app.get("/{section}/{slug}/", response_class=HTMLResponse)
async def post_or_term_detail(
    request: Request,
    section: str,
    slug: str,
    config: SiteConfig = Depends(get_config),
    repository: PostRepository = Depends(get_repository),
) -> HTMLResponse:
    """Render a single post, or the listing of a taxonomy term such as ``/tags/rust/``."""

    site = _preview_config(request, config)
    posts = repository.list_posts()
    renderer = SiteRenderer(site, templates.env)

    if section in TAXONOMIES:
        term = next((term for term in group_terms(posts, section) if term.slug == slug), None)
        if term is None:
            raise HTTPException(status_code=404, detail="Term not found")
        return _render_page(
            request,
            "list.html",
            site,
            title=term.name,
            pages=renderer.page_context(term.posts),
            feed_url=site.absolute_url(f"{section}/{term.slug}/index.xml"),
        )

    path = f"/{section}/{slug}/"
    post = next((post for post in posts if post.relative_url == path), None)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return _render_page(request, "single.html", site, **renderer.post_context(post))
