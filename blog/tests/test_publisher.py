from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import shutil
import subprocess

import pytest
import yaml

from blog.services.content import parse_post
from blog.services.publisher import GitPagesPublisher, PostScaffolder, PublishError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def git(path: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=path,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    return completed.stdout.strip()


def init_repo(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init")
    git(path, "config", "user.name", "Blog Bot")
    git(path, "config", "user.email", "bot@example.com")
    (path / "site.yaml").write_text("title: Test Blog\n", encoding="utf-8")
    git(path, "add", "site.yaml")
    git(path, "commit", "-m", "Initial commit")


def build_output(path: Path, *, home: str = "<h1>Home</h1>") -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / "index.html").write_text(home, encoding="utf-8")
    (path / "posts" / "hello").mkdir(parents=True, exist_ok=True)
    (path / "posts" / "hello" / "index.html").write_text("<p>Hello</p>", encoding="utf-8")
    (path / "index.xml").write_text("<rss version=\"2.0\"></rss>", encoding="utf-8")
    return path


def test_scaffolder_writes_draft_with_yaml_front_matter(content_dir: Path) -> None:
    created_at = datetime(2024, 6, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)

    result = PostScaffolder(content_dir).create(
        "Reading Binary Formats",
        tags=["ruby", "parsing"],
        created_at=created_at,
    )

    assert result.slug == "reading-binary-formats"
    assert result.path == content_dir / "posts" / "reading-binary-formats.md"
    assert result.created_at == datetime(2024, 6, 1, 9, 30, 15, tzinfo=timezone.utc)

    content = result.path.read_text(encoding="utf-8")
    front_matter = yaml.safe_load(content.split("---\n", 2)[1])
    assert front_matter == {
        "title": "Reading Binary Formats",
        "date": "2024-06-01T09:30:15+00:00",
        "draft": True,
        "tags": ["ruby", "parsing"],
    }

    post = parse_post(content, path=result.path, section="posts")
    assert post.draft is True
    assert post.date == result.created_at


def test_scaffolder_never_overwrites_existing_posts(content_dir: Path) -> None:
    scaffolder = PostScaffolder(content_dir)

    first = scaffolder.create("Hello World", body="Original text.")
    second = scaffolder.create("Hello World")
    (content_dir / "posts" / "hello-world-3").mkdir()
    (content_dir / "posts" / "hello-world-3" / "index.md").write_text("---\n---\n", encoding="utf-8")
    fourth = scaffolder.create("Hello World")

    assert [first.slug, second.slug, fourth.slug] == ["hello-world", "hello-world-2", "hello-world-4"]
    assert "Original text." in first.path.read_text(encoding="utf-8")


def test_scaffolder_rejects_blank_titles(content_dir: Path) -> None:
    with pytest.raises(ValueError):
        PostScaffolder(content_dir).create("   ")


def test_scaffolder_honours_explicit_slug_and_section(content_dir: Path) -> None:
    result = PostScaffolder(content_dir, section="notes").create("Some Title", slug="Custom Slug!", draft=False)

    assert result.path == content_dir / "notes" / "custom-slug.md"
    assert "draft: false" in result.path.read_text(encoding="utf-8")


@requires_git
def test_publish_commits_output_to_orphan_pages_branch(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    output = build_output(tmp_path / "public")
    source_head = git(repo, "rev-parse", "--short", "HEAD")

    publisher = GitPagesPublisher(repo_path=repo, publish_dir=output, cname="blog.example.com")
    result = publisher.publish(push=False)

    assert result.branch == "gh-pages"
    assert result.changed
    assert result.pushed is False
    assert git(repo, "rev-parse", "gh-pages") == result.commit_hash
    assert git(repo, "log", "-1", "--pretty=%B", "gh-pages") == f"deploy: {source_head}"
    assert git(repo, "show", "gh-pages:index.html") == "<h1>Home</h1>"
    assert git(repo, "show", "gh-pages:CNAME") == "blog.example.com"

    tracked = git(repo, "ls-tree", "-r", "--name-only", "gh-pages").splitlines()
    assert sorted(tracked) == [".nojekyll", "CNAME", "index.html", "index.xml", "posts/hello/index.html"]
    assert "site.yaml" not in tracked

    # The source branch and working copy stay as they were.
    assert git(repo, "status", "--porcelain") == ""
    assert git(repo, "worktree", "list").count("\n") == 0


@requires_git
def test_publish_without_changes_creates_no_commit(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    output = build_output(tmp_path / "public")
    publisher = GitPagesPublisher(repo_path=repo, publish_dir=output)

    first = publisher.publish(push=False)
    second = publisher.publish(push=False)

    assert first.changed
    assert second.commit_hash is None
    assert not second.changed
    assert git(repo, "rev-parse", "gh-pages") == first.commit_hash


@requires_git
def test_publish_replaces_stale_files(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    output = build_output(tmp_path / "public")
    publisher = GitPagesPublisher(repo_path=repo, publish_dir=output)
    publisher.publish(push=False, message="first deploy")

    shutil.rmtree(output / "posts")
    (output / "index.html").write_text("<h1>Updated</h1>", encoding="utf-8")
    result = publisher.publish(push=False, message="second deploy")

    assert result.changed
    assert git(repo, "show", "gh-pages:index.html") == "<h1>Updated</h1>"
    tracked = git(repo, "ls-tree", "-r", "--name-only", "gh-pages").splitlines()
    assert "posts/hello/index.html" not in tracked
    assert git(repo, "log", "--pretty=%s", "gh-pages").splitlines() == ["second deploy", "first deploy"]


@requires_git
def test_publish_pushes_branch_to_remote(tmp_path: Path) -> None:
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git(remote, "init", "--bare")
    repo = tmp_path / "repo"
    init_repo(repo)
    git(repo, "remote", "add", "origin", str(remote))
    output = build_output(tmp_path / "public")

    result = GitPagesPublisher(repo_path=repo, publish_dir=output).publish()

    assert result.pushed is True
    assert git(remote, "rev-parse", "gh-pages") == result.commit_hash


@requires_git
def test_publish_reports_git_failures(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    output = build_output(tmp_path / "public")

    publisher = GitPagesPublisher(repo_path=repo, publish_dir=output, remote="missing", token="s3cret")
    with pytest.raises(PublishError) as excinfo:
        publisher.publish()

    assert "s3cret" not in str(excinfo.value)
    assert git(repo, "worktree", "list").count("\n") == 0


def test_publish_requires_built_output(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()

    with pytest.raises(FileNotFoundError):
        GitPagesPublisher(repo_path=repo, publish_dir=tmp_path / "public").publish(push=False)
