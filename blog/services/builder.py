"""Build orchestration: load posts, render every page and feed, write the output directory."""
from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import shutil
import time

from blog.models.build import BuildError, BuildResult
from blog.models.post import Post
from blog.models.site import SiteConfig
from blog.services.content import ContentLoader
from blog.services.feed import FEED_FILENAME, render_feed, sort_by_publish_date
from blog.services.minify import minify
from blog.services.renderer import SiteRenderer, create_environment
from blog.utils.text import slugify

LOGGER = logging.getLogger(__name__)

TAXONOMIES: tuple[str, ...] = ("tags", "categories")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class _Term:
    name: str
    slug: str
    posts: list[Post] = field(default_factory=list)


def group_terms(posts: Sequence[Post], taxonomy: str) -> list[_Term]:
    """Group ``posts`` by the terms of ``taxonomy``; terms that slugify alike are merged."""

    terms: dict[str, _Term] = {}
    for post in posts:
        for name in getattr(post, taxonomy):
            slug = slugify(name, fallback="term")
            term = terms.setdefault(slug, _Term(name=name, slug=slug))
            term.posts.append(post)
    return sorted(terms.values(), key=lambda term: term.slug)


class SiteBuilder:
    """Compile the content directory into a static site."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        template_dir: Path | None = None,
        loader: ContentLoader | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._env = create_environment(template_dir)
        self._renderer = SiteRenderer(config, self._env)
        self._loader = loader or ContentLoader(config.content_dir)
        self._clock = clock or _utcnow

    def partition(self, posts: Sequence[Post]) -> tuple[list[Post], list[Post]]:
        """Split ``posts`` into those included in the build and those skipped."""

        now = self._clock()
        published: list[Post] = []
        skipped: list[Post] = []
        for post in posts:
            if post.is_published(
                now,
                include_drafts=self._config.build_drafts,
                include_future=self._config.build_future,
            ):
                published.append(post)
            else:
                skipped.append(post)
        return sort_by_publish_date(published), skipped

    def render(self, posts: Sequence[Post]) -> dict[Path, str]:
        """Render every output document for the published ``posts``, keyed by relative path."""

        pages: dict[Path, str] = {}
        errors: list[str] = []

        def _add(path: Path, payload: str, origin: str) -> None:
            if path in pages:
                errors.append(f"{origin}: output path {path.as_posix()} is already taken")
                return
            pages[path] = payload

        _add(Path("index.html"), self._renderer.render_index(posts), "home page")
        _add(Path(FEED_FILENAME), render_feed(self._config, posts, env=self._env), "home feed")

        for post in posts:
            _add(post.output_path, self._renderer.render_post(post), str(post.source_path or post.slug))

        sections: dict[str, list[Post]] = {}
        for post in posts:
            if post.section:
                sections.setdefault(post.section, []).append(post)
        for section, section_posts in sorted(sections.items()):
            base = Path(section)
            feed_path = f"{section}/{FEED_FILENAME}"
            title = section.replace("-", " ").title()
            _add(
                base / "index.html",
                self._renderer.render_list(title, section_posts, feed_path=feed_path),
                f"section {section}",
            )
            _add(
                base / FEED_FILENAME,
                render_feed(
                    self._config, section_posts, feed_path=feed_path, title=title, link_path=f"/{section}/", env=self._env
                ),
                f"section {section}",
            )

        for taxonomy in TAXONOMIES:
            terms = group_terms(posts, taxonomy)
            _add(
                Path(taxonomy) / "index.html",
                self._renderer.render_terms(
                    taxonomy, [(term.name, f"/{taxonomy}/{term.slug}/", len(term.posts)) for term in terms]
                ),
                f"taxonomy {taxonomy}",
            )
            for term in terms:
                feed_path = f"{taxonomy}/{term.slug}/{FEED_FILENAME}"
                _add(
                    Path(taxonomy) / term.slug / "index.html",
                    self._renderer.render_list(term.name, term.posts, feed_path=feed_path),
                    f"{taxonomy} term {term.name}",
                )
                _add(
                    Path(taxonomy) / term.slug / FEED_FILENAME,
                    render_feed(
                        self._config,
                        term.posts,
                        feed_path=feed_path,
                        title=term.name,
                        link_path=f"/{taxonomy}/{term.slug}/",
                        env=self._env,
                    ),
                    f"{taxonomy} term {term.name}",
                )

        _add(Path("404.html"), self._renderer.render_not_found(), "not found page")

        sitemap_entries: list[tuple[str, datetime | None]] = [
            (self._config.base_url, max((post.lastmod for post in posts if post.lastmod), default=None))
        ]
        sitemap_entries.extend((post.permalink(self._config.base_url), post.lastmod) for post in posts)
        _add(Path("sitemap.xml"), self._renderer.render_sitemap(sitemap_entries), "sitemap")

        if errors:
            raise BuildError(errors)
        return pages

    def build(self, *, minify_output: bool | None = None, clean: bool = True) -> BuildResult:
        """Run the full build and write the site to ``config.output_dir``.

        Front-matter errors abort the build before anything is written so
        that a broken post can never replace a good deployment.
        """

        started = time.perf_counter()
        output_dir = self._config.output_dir
        self._check_output_dir(output_dir)

        loaded = self._loader.load()
        if loaded.errors:
            for error in loaded.errors:
                LOGGER.error(error)
            raise BuildError(loaded.errors)

        published, skipped = self.partition(loaded.posts)
        for post in skipped:
            LOGGER.info("Skipping %s (draft=%s, date=%s)", post.relative_url, post.draft, post.date.isoformat())

        pages = self.render(published)
        should_minify = self._config.minify if minify_output is None else minify_output
        if should_minify:
            pages = {path: minify(payload, filename=path.name) for path, payload in pages.items()}

        if clean and output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        warnings: list[str] = []
        copied: set[Path] = set()
        static_dir = self._config.static_dir
        if static_dir.is_dir():
            shutil.copytree(static_dir, output_dir, dirs_exist_ok=True)
            copied.update(path.relative_to(static_dir) for path in static_dir.rglob("*") if path.is_file())
        else:
            LOGGER.debug("No static directory at %s", static_dir)

        for post in published:
            warnings.extend(self._copy_bundle_resources(post, output_dir, copied))

        for relative_path, payload in sorted(pages.items()):
            if relative_path in copied:
                warnings.append(f"{relative_path.as_posix()}: generated page overwrites a copied static or bundle file")
            destination = output_dir / relative_path
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(payload, encoding="utf-8")

        duration = time.perf_counter() - started
        LOGGER.info(
            "Built %d page(s) from %d post(s) into %s in %.2fs",
            len(pages),
            len(published),
            output_dir,
            duration,
        )
        return BuildResult(
            output_dir=output_dir,
            pages=sorted(pages),
            posts=published,
            skipped=skipped,
            warnings=warnings,
            duration=duration,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _check_output_dir(self, output_dir: Path) -> None:
        """Refuse to clean a directory that contains the sources."""

        resolved_output = output_dir.resolve()
        for name in ("content_dir", "static_dir"):
            source = getattr(self._config, name).resolve()
            if resolved_output == source or resolved_output in source.parents:
                raise BuildError([f"output directory {output_dir} would overwrite {name} {source}"])

    @staticmethod
    def _copy_bundle_resources(post: Post, output_dir: Path, copied: set[Path]) -> list[str]:
        """Copy files living next to a page bundle's ``index.md`` alongside its HTML.

        Every copied path is recorded in ``copied`` relative to ``output_dir``.
        """

        source = post.source_path
        if source is None or source.name != "index.md":
            return []

        warnings: list[str] = []
        target_dir = output_dir / post.output_path.parent
        for resource in sorted(source.parent.rglob("*")):
            if not resource.is_file() or resource.suffix == ".md":
                continue
            destination = target_dir / resource.relative_to(source.parent)
            if destination.exists():
                warnings.append(f"{resource}: overwrites {destination}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(resource, destination)
            copied.add(destination.relative_to(output_dir))
        return warnings
