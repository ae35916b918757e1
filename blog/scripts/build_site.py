"""Build the static site into the output directory.

Configuration comes from ``site.yaml`` (override the location with
``--config`` or ``DEVBLOG_CONFIG``) and ``DEVBLOG_*`` environment variables;
command line flags win over both.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from blog.models.build import BuildError
from blog.models.site import ConfigError, SiteConfig
from blog.scripts.common import configure_logging, default_config_path, json_default
from blog.services.builder import SiteBuilder

LOGGER = logging.getLogger("devblog.build")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the blog into static HTML and RSS.")
    parser.add_argument("--config", type=Path, default=default_config_path(), help="Path to site.yaml.")
    parser.add_argument("--minify", action="store_true", default=None, help="Minify HTML and XML output.")
    parser.add_argument("--drafts", "-D", action="store_true", help="Include posts marked as drafts.")
    parser.add_argument("--future", "-F", action="store_true", help="Include posts dated in the future.")
    parser.add_argument("--base-url", "-b", help="Override the configured base URL.")
    parser.add_argument("--output", "-d", type=Path, help="Override the output directory.")
    parser.add_argument("--no-clean", action="store_true", help="Keep files already present in the output directory.")
    return parser.parse_args(argv)


def _apply_overrides(config: SiteConfig, args: argparse.Namespace) -> SiteConfig:
    updates: dict[str, object] = {}
    if args.drafts:
        updates["build_drafts"] = True
    if args.future:
        updates["build_future"] = True
    if args.output is not None:
        updates["output_dir"] = args.output.resolve()
    if args.base_url:
        updates["base_url"] = args.base_url
    if not updates:
        return config
    try:
        return SiteConfig.model_validate({**config.model_dump(), **updates})
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def run(argv: list[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)

    try:
        config = _apply_overrides(SiteConfig.load(args.config), args)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    try:
        result = SiteBuilder(config).build(minify_output=args.minify, clean=not args.no_clean)
    except BuildError as exc:
        for error in exc.errors:
            LOGGER.error(error)
        LOGGER.error("Build failed; nothing was written to %s", config.output_dir)
        return 1

    for warning in result.warnings:
        LOGGER.warning(warning)

    summary = {
        "output_dir": result.output_dir,
        "pages": len(result.pages),
        "posts": len(result.posts),
        "skipped": len(result.skipped),
        "feeds": result.feeds,
        "duration_seconds": round(result.duration, 3),
    }
    print(json.dumps(summary, default=json_default, ensure_ascii=False))
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
