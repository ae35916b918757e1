"""Publish the built site to the GitHub Pages branch.

Mirrors what the CI workflow does after the build: the output directory is
committed to ``gh-pages`` (or ``--branch``) and pushed to the remote. When
``GITHUB_TOKEN`` is set it is used to authenticate HTTPS pushes.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from blog.models.site import ConfigError, SiteConfig
from blog.scripts.common import configure_logging, default_config_path
from blog.services.publisher import GitPagesPublisher, PublishError

LOGGER = logging.getLogger("devblog.deploy")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish the built site to GitHub Pages.")
    parser.add_argument("--config", type=Path, default=default_config_path(), help="Path to site.yaml.")
    parser.add_argument("--repo", type=Path, default=Path.cwd(), help="Git repository to publish from.")
    parser.add_argument("--branch", default=os.getenv("DEVBLOG_PAGES_BRANCH", "gh-pages"), help="Pages branch.")
    parser.add_argument("--remote", default="origin", help="Remote to push to.")
    parser.add_argument("--message", "-m", help="Commit message; defaults to 'deploy: <source sha>'.")
    parser.add_argument("--cname", default=os.getenv("DEVBLOG_CNAME"), help="Custom domain written to CNAME.")
    parser.add_argument("--no-push", action="store_true", help="Commit locally without pushing.")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)

    try:
        config = SiteConfig.load(args.config)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    publisher = GitPagesPublisher(
        repo_path=args.repo,
        publish_dir=config.output_dir,
        branch=args.branch,
        remote=args.remote,
        cname=args.cname,
        token=os.getenv("GITHUB_TOKEN"),
    )
    try:
        result = publisher.publish(message=args.message, push=not args.no_push)
    except (PublishError, FileNotFoundError) as exc:
        LOGGER.error("Publishing failed: %s", exc)
        return 1

    if result.changed:
        LOGGER.info("Published %s as %s", result.branch, result.commit_hash)
    else:
        LOGGER.info("No changes to publish on %s", result.branch)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
