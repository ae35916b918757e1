"""Tests for the command line entry points."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from blog.scripts import build_site, check_site, new_post


@pytest.fixture()
def site_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a blog checkout with a ``site.yaml`` using relative directories."""

    for name in ("DEVBLOG_BASE_URL", "DEVBLOG_OUTPUT_DIR", "DEVBLOG_CONTENT_DIR", "DEVBLOG_BUILD_DRAFTS", "DEVBLOG_MINIFY"):
        monkeypatch.delenv(name, raising=False)

    root = tmp_path / "site"
    (root / "content" / "posts").mkdir(parents=True)
    (root / "site.yaml").write_text(
        yaml.safe_dump(
            {
                "title": "Script Blog",
                "base_url": "https://scripts.example.com/",
                "content_dir": "content",
                "static_dir": "static",
                "output_dir": "public",
            }
        ),
        encoding="utf-8",
    )
    return root


def _write(root: Path, relative: str, text: str) -> None:
    path = root / "content" / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_new_post_then_build_and_check(site_root: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = str(site_root / "site.yaml")

    assert new_post.run(["Hello Scripts", "--config", config, "--tags", "python, tooling", "--publish"]) == 0
    created = Path(capsys.readouterr().out.strip())
    assert created == site_root / "content" / "posts" / "hello-scripts.md"
    assert "draft: false" in created.read_text(encoding="utf-8")

    assert build_site.run(["--config", config, "--minify"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["posts"] == 1
    assert summary["output_dir"] == (site_root / "public").as_posix()
    assert "index.xml" in summary["feeds"]
    assert "tags/python/index.xml" in summary["feeds"]
    assert (site_root / "public" / "posts" / "hello-scripts" / "index.html").is_file()

    assert check_site.run(["--config", config]) == 0


def test_new_post_defaults_to_draft(site_root: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = str(site_root / "site.yaml")

    assert new_post.run(["Work In Progress", "--config", config]) == 0
    assert build_site.run(["--config", config]) == 0
    summary = json.loads(capsys.readouterr().out.splitlines()[-1])
    assert summary["posts"] == 0
    assert summary["skipped"] == 1

    assert build_site.run(["--config", config, "--drafts", "--output", str(site_root / "preview")]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["posts"] == 1
    assert (site_root / "preview" / "posts" / "work-in-progress" / "index.html").is_file()


def test_build_fails_on_invalid_front_matter(site_root: Path) -> None:
    _write(site_root, "posts/broken.md", "---\ntitle: Broken\n")
    config = str(site_root / "site.yaml")

    assert build_site.run(["--config", config]) == 1
    assert not (site_root / "public").exists()
    assert check_site.run(["--config", config, "--content-only"]) == 1


def test_build_rejects_invalid_configuration(site_root: Path) -> None:
    (site_root / "site.yaml").write_text("summary_length: 0\n", encoding="utf-8")

    assert build_site.run(["--config", str(site_root / "site.yaml")]) == 1


def test_check_site_requires_build_output(site_root: Path) -> None:
    _write(site_root, "posts/one.md", "---\ntitle: One\ndate: 2024-01-01\n---\n\nBody.\n")

    assert check_site.run(["--config", str(site_root / "site.yaml"), "--content-only"]) == 0
    assert check_site.run(["--config", str(site_root / "site.yaml")]) == 1
