"""Scaffold a new Markdown post with front matter."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from blog.models.site import ConfigError, SiteConfig
from blog.scripts.common import configure_logging, default_config_path
from blog.services.publisher import PostScaffolder

LOGGER = logging.getLogger("devblog.new")


def _split_terms(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [term.strip() for term in raw.split(",") if term.strip()]


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a new blog post.")
    parser.add_argument("title", help="Title of the new post.")
    parser.add_argument("--config", type=Path, default=default_config_path(), help="Path to site.yaml.")
    parser.add_argument("--section", default="posts", help="Content section to create the post in.")
    parser.add_argument("--slug", help="Explicit slug; defaults to the slugified title.")
    parser.add_argument("--tags", help="Comma separated tags.")
    parser.add_argument("--categories", help="Comma separated categories.")
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Create the post with draft: false so the next build includes it.",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)

    try:
        config = SiteConfig.load(args.config)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    scaffolder = PostScaffolder(content_dir=config.content_dir, section=args.section)
    try:
        result = scaffolder.create(
            args.title,
            slug=args.slug,
            tags=_split_terms(args.tags),
            categories=_split_terms(args.categories),
            draft=not args.publish,
        )
    except (ValueError, OSError) as exc:
        LOGGER.error("Could not create post: %s", exc)
        return 1

    print(result.path)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
