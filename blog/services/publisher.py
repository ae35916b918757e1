"""Helpers that create new posts and publish the built site to GitHub Pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import Any
from urllib.parse import urlparse, urlunparse

import yaml

from blog.models.publisher import PublicationResult, ScaffoldResult
from blog.utils.text import slugify

LOGGER = logging.getLogger(__name__)


class PublishError(RuntimeError):
    """Raised when a Git operation required for publishing fails."""


@dataclass(slots=True)
class PostScaffolder:
    """Create Markdown skeletons with YAML front matter under the content directory."""

    content_dir: Path
    section: str = "posts"

    def create(
        self,
        title: str,
        *,
        slug: str | None = None,
        tags: list[str] | None = None,
        categories: list[str] | None = None,
        draft: bool = True,
        created_at: datetime | None = None,
        body: str = "",
    ) -> ScaffoldResult:
        """Write a new post and return where it was created; existing files are never overwritten."""

        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValueError("A post title must not be empty")

        created = (created_at or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(microsecond=0)
        final_slug, destination = self._resolve_destination(slugify(slug or cleaned_title))

        metadata: dict[str, Any] = {
            "title": cleaned_title,
            "date": created.isoformat(),
            "draft": draft,
        }
        if tags:
            metadata["tags"] = list(tags)
        if categories:
            metadata["categories"] = list(categories)

        front_matter = yaml.safe_dump(metadata, allow_unicode=True, sort_keys=False).strip()
        payload = f"---\n{front_matter}\n---\n\n{body.strip()}\n" if body.strip() else f"---\n{front_matter}\n---\n\n"

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(payload, encoding="utf-8")
        LOGGER.info("Created %s", destination)
        return ScaffoldResult(slug=final_slug, path=destination, created_at=created)

    def _resolve_destination(self, base_slug: str) -> tuple[str, Path]:
        """Return a unique slug and corresponding path under the section directory."""

        section_root = self.content_dir / self.section if self.section else self.content_dir
        slug = base_slug or "post"
        candidate = section_root / f"{slug}.md"
        suffix = 2

        while candidate.exists() or (section_root / slug / "index.md").exists():
            slug = f"{base_slug}-{suffix}" if base_slug else f"post-{suffix}"
            candidate = section_root / f"{slug}.md"
            suffix += 1

        return slug, candidate


@dataclass(slots=True)
class GitPagesPublisher:
    """Commit the contents of ``publish_dir`` to a Pages branch and optionally push it.

    The branch is checked out into a temporary worktree so the working copy
    of the source repository is left untouched. The branch is created as an
    orphan the first time the site is published.
    """

    repo_path: Path
    publish_dir: Path
    branch: str = "gh-pages"
    remote: str = "origin"
    cname: str | None = None
    token: str | None = field(default=None, repr=False)
    git_executable: str = "git"

    def publish(self, *, message: str | None = None, push: bool = True) -> PublicationResult:
        """Replace the branch contents with ``publish_dir`` and create a commit if anything changed."""

        if not self.repo_path.exists():
            raise FileNotFoundError(f"Repository path '{self.repo_path}' does not exist")
        if not self.publish_dir.is_dir():
            raise FileNotFoundError(f"Publish directory '{self.publish_dir}' does not exist; build the site first")

        source_head = self._run_git("rev-parse", "--short", "HEAD").stdout.strip()
        commit_message = message or f"deploy: {source_head}"

        worktree = Path(tempfile.mkdtemp(prefix="devblog-pages-"))
        shutil.rmtree(worktree)
        try:
            self._checkout_branch(worktree)
            self._replace_contents(worktree)
            self._run_git("add", "--all", ".", cwd=worktree)

            status = self._run_git("status", "--porcelain", cwd=worktree).stdout.strip()
            commit_hash: str | None = None
            if status:
                self._run_git("commit", "-m", commit_message, cwd=worktree)
                commit_hash = self._run_git("rev-parse", "HEAD", cwd=worktree).stdout.strip()
                LOGGER.info("Committed %s to %s", commit_hash, self.branch)
            else:
                LOGGER.info("Published output matches %s; nothing to commit", self.branch)

            pushed = False
            if push:
                self._run_git("push", self._push_target(), f"{self.branch}:{self.branch}", cwd=worktree)
                pushed = True
                LOGGER.info("Pushed %s to %s", self.branch, self.remote)
        finally:
            self._remove_worktree(worktree)

        return PublicationResult(
            branch=self.branch,
            commit_hash=commit_hash,
            pushed=pushed,
            published_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _branch_exists(self) -> bool:
        result = self._run_git("rev-parse", "--verify", "--quiet", f"refs/heads/{self.branch}", check=False)
        return result.returncode == 0

    def _checkout_branch(self, worktree: Path) -> None:
        if self._branch_exists():
            self._run_git("worktree", "add", str(worktree), self.branch)
            return

        self._run_git("worktree", "add", "--detach", str(worktree))
        self._run_git("checkout", "--orphan", self.branch, cwd=worktree)
        self._run_git("rm", "-r", "-f", "--quiet", "--ignore-unmatch", ".", cwd=worktree)

    def _replace_contents(self, worktree: Path) -> None:
        for entry in worktree.iterdir():
            if entry.name == ".git":
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

        shutil.copytree(self.publish_dir, worktree, dirs_exist_ok=True)
        # GitHub Pages would otherwise run Jekyll and drop underscore-prefixed paths.
        (worktree / ".nojekyll").touch()
        if self.cname:
            (worktree / "CNAME").write_text(f"{self.cname.strip()}\n", encoding="utf-8")

    def _push_target(self) -> str:
        """Return the remote to push to, embedding the token for HTTPS remotes when provided."""

        if not self.token:
            return self.remote

        url = self._run_git("remote", "get-url", self.remote).stdout.strip()
        parsed = urlparse(url)
        if parsed.scheme != "https" or not parsed.hostname:
            return self.remote
        netloc = f"x-access-token:{self.token}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))

    def _remove_worktree(self, worktree: Path) -> None:
        result = self._run_git("worktree", "remove", "--force", str(worktree), check=False)
        if result.returncode != 0 and worktree.exists():
            shutil.rmtree(worktree, ignore_errors=True)
            self._run_git("worktree", "prune", check=False)

    def _run_git(
        self, *args: str, cwd: Path | None = None, check: bool = True
    ) -> subprocess.CompletedProcess[str]:
        """Execute a Git command and raise :class:`PublishError` on failure."""

        result = subprocess.run(
            [self.git_executable, *args],
            cwd=cwd or self.repo_path,
            text=True,
            check=False,
            capture_output=True,
        )
        if check and result.returncode != 0:
            command = " ".join(arg if not self.token else arg.replace(self.token, "***") for arg in args)
            stderr = result.stderr.strip()
            if self.token:
                stderr = stderr.replace(self.token, "***")
            raise PublishError(f"git {command} failed: {stderr}")
        return result
