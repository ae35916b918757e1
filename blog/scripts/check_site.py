"""Run the acceptance checks on the content directory and, unless skipped, on the built site."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from blog.models.site import ConfigError, SiteConfig
from blog.scripts.common import configure_logging, default_config_path
from blog.services.checks import check_content, check_output, summarize_report

LOGGER = logging.getLogger("devblog.check")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate blog content and build output.")
    parser.add_argument("--config", type=Path, default=default_config_path(), help="Path to site.yaml.")
    parser.add_argument(
        "--content-only",
        action="store_true",
        help="Only validate front matter; do not inspect the output directory.",
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

    report = check_content(config.content_dir) if args.content_only else check_output(config)
    counts = summarize_report(report, logger=LOGGER)
    if not report.ok:
        LOGGER.error("Checks failed with %d error(s)", counts["errors"])
        return 1

    LOGGER.info("All checks passed (%d warning(s))", counts["warnings"])
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
