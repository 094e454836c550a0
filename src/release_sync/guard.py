# ABOUTME: Loop prevention for the release job
# ABOUTME: Decides whether the triggering commit was produced by the job itself

"""Self-trigger guard.

The job pushes a manifest commit back to the branch it was triggered from.
Without a guard that commit would trigger another run, which would push
another commit, and so on. Three signals are available:

- the path filter: a push whose changes, across every pushed commit, lie
  only in the manifest directory never releases (the CI trigger's
  ``paths-ignore`` does the same upstream)
- the skip marker: the job's commit messages start with ``[ci-skip]``
- the author name: the job commits as "GitHub Actions"

The author name is a free-text field anyone can set, so a human committing
under that name is skipped too. The marker is the structural signal; the
author check is kept for checkouts whose history predates the marker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from release_sync.config import LoopGuardStrategy
    from release_sync.utils.git import CommitInfo

logger = structlog.get_logger(__name__)


@dataclass
class SkipRelease:
    """Response indicating the run must stop without side effects."""

    reason: str
    detail: str
    setting: str

    def format_message(self) -> str:
        """Format skip message for the CI log."""
        return (
            f"RELEASE SKIPPED: {self.reason}\n"
            f"Detail: {self.detail}\n"
            f"Setting: {self.setting}"
        )


def _matches(path: str, entry: str) -> bool:
    if entry.endswith("/"):
        return path.startswith(entry)
    return path == entry or path.startswith(f"{entry}/")


def paths_within(paths: Sequence[str], entries: Sequence[str]) -> bool:
    """True when every path is one of the entries or lies under one.

    An entry ending in "/" is a directory. Any other entry matches that exact
    file, or the directory of that name. An empty path list is never
    "within": a push whose changes cannot be listed is treated as a normal
    push.
    """
    if not paths or not entries:
        return False
    return all(any(_matches(path, entry) for entry in entries) for path in paths)


class LoopGuard:
    """Detects commits produced by the job itself."""

    def __init__(
        self,
        strategy: LoopGuardStrategy,
        automation_name: str,
        skip_marker: str,
        ignore_paths: Sequence[str] = (),
    ) -> None:
        """Initialize loop guard.

        Args:
            strategy: "author", "marker", or "any" (either signal skips)
            automation_name: Author name the job commits under
            skip_marker: Token the job puts in its commit messages
            ignore_paths: Path prefixes whose changes alone never release
        """
        self._strategy = strategy
        self._automation_name = automation_name
        self._skip_marker = skip_marker
        self._ignore_paths = list(ignore_paths)

    @property
    def ignore_paths(self) -> list[str]:
        return list(self._ignore_paths)

    def check(
        self,
        commit: CommitInfo,
        changed_paths: Sequence[str] | None = None,
    ) -> SkipRelease | None:
        """Check whether this commit must not be released.

        Args:
            commit: Most recent commit of the checkout
            changed_paths: Paths the whole push changed, None if unknown

        Returns:
            SkipRelease if the run should stop, None to proceed
        """
        if changed_paths is not None and paths_within(changed_paths, self._ignore_paths):
            logger.info(
                "Push only touches ignored paths",
                commit=commit.sha,
                paths=list(changed_paths),
            )
            return SkipRelease(
                reason="Push only changes ignored paths",
                detail=", ".join(changed_paths),
                setting="RELEASE_IGNORE_PATHS",
            )

        if self._strategy in ("marker", "any") and self._skip_marker:
            if self._skip_marker in commit.message:
                logger.info(
                    "Commit carries skip marker", commit=commit.sha, marker=self._skip_marker
                )
                return SkipRelease(
                    reason="Commit message carries the skip marker",
                    detail=commit.subject,
                    setting="RELEASE_SKIP_MARKER",
                )

        if self._strategy in ("author", "any"):
            if commit.author_name == self._automation_name:
                logger.info(
                    "Commit authored by automation", commit=commit.sha, author=commit.author_name
                )
                return SkipRelease(
                    reason="Commit was authored by the automation identity",
                    detail=commit.author_name,
                    setting="RELEASE_AUTOMATION_NAME",
                )

        return None
