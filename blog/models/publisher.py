"""Data structures returned by the publishing helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(slots=True)
class ScaffoldResult:
    """Outcome of creating a new post skeleton under the content directory."""

    slug: str
    path: Path
    created_at: datetime


@dataclass(slots=True)
class PublicationResult:
    """Outcome of publishing the built site to the GitHub Pages branch."""

    branch: str
    commit_hash: str | None
    pushed: bool
    published_at: datetime

    @property
    def changed(self) -> bool:
        """``False`` when the output matched the branch and no commit was created."""

        return self.commit_hash is not None
