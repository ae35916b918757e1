"""Tests covering the FastAPI preview routes and their template contexts."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import feedparser
import pytest
from fastapi.testclient import TestClient

from blog.main import FileContentRepository, PostRepository, app, get_config, get_repository
from blog.models.post import Post
from blog.models.site import SiteConfig
from blog.services.feed import sort_by_publish_date


class StubPostRepository:
    """In-memory repository used to exercise FastAPI dependency overrides."""

    def __init__(self, posts: Iterable[Post] | None = None) -> None:
        self._posts = list(posts or [])

    def list_posts(self) -> list[Post]:
        return sort_by_publish_date(self._posts)


def _post(slug: str, title: str, date: str, *, section: str = "posts", **metadata: object) -> Post:
    return Post.from_front_matter(
        {"title": title, "date": date, **metadata},
        "First paragraph.\n\n## Details\n\nMore text.",
        source_path=Path(f"content/{section}/{slug}.md"),
        section=section,
    )


@pytest.fixture()
def client(site_config: SiteConfig) -> Callable[[PostRepository], TestClient]:
    """Provide a helper that returns a configured ``TestClient`` for a repository."""

    clients: list[TestClient] = []

    def _factory(repository: PostRepository) -> TestClient:
        app.dependency_overrides[get_config] = lambda: site_config
        app.dependency_overrides[get_repository] = lambda: repository
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield _factory

    for created_client in clients:
        created_client.close()
    app.dependency_overrides.pop(get_config, None)
    app.dependency_overrides.pop(get_repository, None)


@pytest.fixture()
def sample_posts() -> list[Post]:
    return [
        _post("marshal", "Reading Marshal Streams", "2024-02-01T10:00:00Z", tags=["Ruby"]),
        _post("parser", "A Ruby Parser in Rust", "2024-03-15T09:00:00Z", tags=["Ruby", "Rust"]),
        _post("about", "About", "2023-01-01T00:00:00Z", section=""),
    ]


def test_healthz(client: Callable[..., TestClient]) -> None:
    response = client(StubPostRepository()).get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_homepage_lists_posts_newest_first(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    response = client(StubPostRepository(sample_posts)).get("/")

    assert response.status_code == 200
    assert response.template.name == "index.html"
    titles = [page["title"] for page in response.context["pages"]]
    assert titles == ["A Ruby Parser in Rust", "Reading Marshal Streams", "About"]
    assert 'href="http://testserver/posts/parser/"' in response.text


def test_homepage_without_posts(client: Callable[..., TestClient]) -> None:
    response = client(StubPostRepository()).get("/")

    assert response.status_code == 200
    assert "No posts yet." in response.text


def test_post_detail_renders_markdown(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    response = client(StubPostRepository(sample_posts)).get("/posts/parser/")

    assert response.status_code == 200
    assert response.template.name == "single.html"
    assert response.context["page"]["title"] == "A Ruby Parser in Rust"
    assert '<h2 id="details">Details</h2>' in response.text
    assert 'href="http://testserver/tags/rust/"' in response.text


def test_unknown_post_returns_404(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    response = client(StubPostRepository(sample_posts)).get("/posts/missing/")

    assert response.status_code == 404


def test_section_listing_and_top_level_page(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    test_client = client(StubPostRepository(sample_posts))

    section = test_client.get("/posts/")
    page = test_client.get("/about/")
    missing = test_client.get("/nothing/")

    assert section.template.name == "list.html"
    assert [item["title"] for item in section.context["pages"]] == ["A Ruby Parser in Rust", "Reading Marshal Streams"]
    assert page.template.name == "single.html"
    assert page.context["page"]["title"] == "About"
    assert missing.status_code == 404


def test_taxonomy_routes(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    test_client = client(StubPostRepository(sample_posts))

    terms = test_client.get("/tags/")
    term = test_client.get("/tags/ruby/")
    unknown = test_client.get("/tags/python/")

    assert terms.template.name == "terms.html"
    assert [(item["name"], item["count"]) for item in terms.context["terms"]] == [("Ruby", 2), ("Rust", 1)]
    assert term.template.name == "list.html"
    assert len(term.context["pages"]) == 2
    assert unknown.status_code == 404


def test_feeds_use_preview_host(client: Callable[..., TestClient], sample_posts: list[Post]) -> None:
    test_client = client(StubPostRepository(sample_posts))

    home = test_client.get("/index.xml")
    section = test_client.get("/posts/index.xml")

    assert home.status_code == 200
    assert home.headers["content-type"].startswith("application/rss+xml")
    parsed = feedparser.parse(home.content)
    assert [entry.link for entry in parsed.entries] == [
        "http://testserver/posts/parser/",
        "http://testserver/posts/marshal/",
        "http://testserver/about/",
    ]
    assert len(feedparser.parse(section.content).entries) == 2
    assert test_client.get("/nothing/index.xml").status_code == 404


def test_file_repository_hides_drafts_and_broken_posts(site_config: SiteConfig, write_post, content_dir: Path) -> None:
    write_post("posts/live.md", title="Live", date="2024-01-01T00:00:00Z")
    write_post("posts/draft.md", title="Draft", date="2024-01-02T00:00:00Z", draft=True)
    (content_dir / "posts" / "broken.md").write_text("---\ntitle: [\n---\n", encoding="utf-8")

    posts = FileContentRepository(site_config).list_posts()

    assert [post.title for post in posts] == ["Live"]

    with_drafts = FileContentRepository(site_config.model_copy(update={"build_drafts": True})).list_posts()
    assert [post.title for post in with_drafts] == ["Draft", "Live"]
