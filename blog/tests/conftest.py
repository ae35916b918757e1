"""Shared fixtures and helpers for the test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from blog.models.site import SiteConfig


FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

PostWriter = Callable[..., Path]


def _render_document(metadata: dict[str, Any], body: str) -> str:
    front_matter = yaml.safe_dump(metadata, allow_unicode=True, sort_keys=False).strip()
    return f"---\n{front_matter}\n---\n\n{body}\n"


@pytest.fixture()
def content_dir(tmp_path: Path) -> Path:
    path = tmp_path / "content"
    path.mkdir()
    return path


@pytest.fixture()
def site_config(tmp_path: Path, content_dir: Path) -> SiteConfig:
    """Configuration pointing every directory inside ``tmp_path``."""

    return SiteConfig(
        title="Test Blog",
        base_url="https://blog.example.com",
        description="Notes written for the test suite.",
        content_dir=content_dir,
        static_dir=tmp_path / "static",
        output_dir=tmp_path / "public",
    )


@pytest.fixture()
def write_post(content_dir: Path) -> PostWriter:
    """Return a helper that writes a Markdown post below the content directory."""

    def _write(
        relative: str,
        *,
        title: str,
        date: str,
        body: str = "Body text for the post.",
        **metadata: Any,
    ) -> Path:
        path = content_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"title": title, "date": date, **metadata}
        path.write_text(_render_document(payload, body), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW
