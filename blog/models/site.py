"""Site-wide configuration loaded from ``site.yaml`` and ``DEVBLOG_*`` environment variables."""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("site.yaml")
ENV_PREFIX = "DEVBLOG_"


class ConfigError(ValueError):
    """Raised when the site configuration cannot be loaded or is invalid."""


class SiteConfig(BaseModel):
    """Settings shared by the build, the preview server and the CLI scripts."""

    title: str = Field("My Blog", description="Site title used in page headers and feed channels.")
    base_url: str = Field("http://localhost:8000/", description="Absolute URL the site is served from.")
    description: str = ""
    language_code: str = "en-us"
    author: str | None = None
    copyright: str | None = None
    content_dir: Path = Path("content")
    static_dir: Path = Path("static")
    output_dir: Path = Path("public")
    rss_limit: int = Field(-1, description="Maximum number of feed items; -1 or 0 means unlimited.")
    summary_length: int = Field(70, ge=1, description="Words kept in automatically derived summaries.")
    build_drafts: bool = False
    build_future: bool = False
    minify: bool = False

    @field_validator("base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("base_url must not be empty.")
        return cleaned if cleaned.endswith("/") else cleaned + "/"

    @field_validator("title")
    @classmethod
    def _ensure_title_not_empty(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("title must not be empty.")
        return cleaned

    @property
    def feed_url(self) -> str:
        return self.absolute_url("index.xml")

    def absolute_url(self, path: str) -> str:
        """Join a site-relative ``path`` onto ``base_url``."""

        return self.base_url + path.lstrip("/")

    def resolve(self, root: Path) -> "SiteConfig":
        """Return a copy whose relative directories are anchored at ``root``."""

        updates: dict[str, Path] = {}
        for name in ("content_dir", "static_dir", "output_dir"):
            value: Path = getattr(self, name)
            if not value.is_absolute():
                updates[name] = root / value
        return self.model_copy(update=updates)

    @classmethod
    def load(cls, path: Path | None = None, *, environ: Mapping[str, str] | None = None) -> "SiteConfig":
        """Read the YAML configuration at ``path`` and apply environment overrides.

        A missing file is not an error: defaults are used, which keeps
        scaffolding a brand new blog frictionless. Relative directories are
        resolved against the directory holding the configuration file.
        """

        config_path = path or DEFAULT_CONFIG_PATH
        payload: dict[str, Any] = {}
        if config_path.exists():
            try:
                loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                raise ConfigError(f"{config_path}: invalid YAML: {exc}") from exc
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigError(f"{config_path}: top level must be a mapping")
            payload.update(loaded or {})
        else:
            LOGGER.info("No configuration file at %s; using defaults", config_path)

        payload.update(_env_overrides(os.environ if environ is None else environ))

        try:
            config = cls(**payload)
        except ValidationError as exc:
            raise ConfigError(f"{config_path}: {exc}") from exc
        return config.resolve(config_path.resolve().parent)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect ``DEVBLOG_<FIELD>`` variables that map onto configuration fields."""

    overrides: dict[str, str] = {}
    for name in SiteConfig.model_fields:
        raw_value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw_value is None or not raw_value.strip():
            continue
        overrides[name] = raw_value.strip()
    return overrides
