"""Data structures describing the outcome of a site build."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from blog.models.post import Post


class BuildError(RuntimeError):
    """Raised when the site cannot be built; nothing is written to the output directory."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        detail = "; ".join(self.errors) if self.errors else "unknown error"
        super().__init__(f"Build failed with {len(self.errors)} error(s): {detail}")


@dataclass(slots=True)
class BuildResult:
    """Summary returned by the builder after writing the site."""

    output_dir: Path
    pages: list[Path] = field(default_factory=list)
    posts: list[Post] = field(default_factory=list)
    skipped: list[Post] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def feeds(self) -> list[Path]:
        """Relative paths of every RSS document written by the build."""

        return [page for page in self.pages if page.name == "index.xml"]
