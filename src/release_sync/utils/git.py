# ABOUTME: Git wrapper used by the loop guard and the manifest step
# ABOUTME: Passes identity and safe.directory per invocation instead of global config

"""Git access with explicit identity and working directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from release_sync.utils.commands import CommandError

if TYPE_CHECKING:
    from pathlib import Path

    from release_sync.utils.commands import CommandRunner

logger = structlog.get_logger(__name__)

# NUL-separated so author names and multi-line messages parse unambiguously
_LAST_COMMIT_FORMAT = "%H%x00%an%x00%ae%x00%B"


@dataclass(frozen=True)
class GitIdentity:
    """Author and committer identity for commits made by the job."""

    name: str
    email: str


@dataclass(frozen=True)
class CommitInfo:
    """The fields of a commit the loop guard looks at."""

    sha: str
    author_name: str
    author_email: str
    message: str

    @property
    def subject(self) -> str:
        return self.message.splitlines()[0] if self.message else ""


class GitRepository:
    """Runs git commands against one checkout.

    Every invocation looks like

        git -c safe.directory=<workdir> [-c user.name=... -c user.email=...] <args>

    so neither the runner's global git config nor the checkout's own config is
    modified.
    """

    def __init__(
        self,
        runner: CommandRunner,
        workdir: Path,
        identity: GitIdentity | None = None,
    ) -> None:
        """Initialize git repository wrapper.

        Args:
            runner: Command runner used for every git call
            workdir: Root of the checkout
            identity: Identity for commits; None uses whatever git resolves
        """
        self._runner = runner
        self._workdir = workdir
        self._identity = identity

    @property
    def workdir(self) -> Path:
        return self._workdir

    @property
    def dry_run(self) -> bool:
        return self._runner.dry_run

    def _base_args(self) -> list[str]:
        args = ["git", "-c", f"safe.directory={self._workdir.resolve().as_posix()}"]
        if self._identity:
            args.extend(
                [
                    "-c",
                    f"user.name={self._identity.name}",
                    "-c",
                    f"user.email={self._identity.email}",
                ]
            )
        return args

    def _git(self, *args: str, mutating: bool = True) -> str:
        result = self._runner.run(
            [*self._base_args(), *args],
            cwd=self._workdir,
            mutating=mutating,
        )
        return result.stdout

    def last_commit(self, rev: str = "HEAD") -> CommitInfo:
        """Read sha, author and message of the most recent commit."""
        out = self._git(
            "log", "-1", f"--pretty=format:{_LAST_COMMIT_FORMAT}", rev, mutating=False
        )
        parts = out.split("\x00", 3)
        parts.extend([""] * (4 - len(parts)))
        sha, author_name, author_email, message = parts
        return CommitInfo(
            sha=sha.strip(),
            author_name=author_name,
            author_email=author_email,
            message=message.strip(),
        )

    def changed_paths(self, base: str, rev: str = "HEAD") -> list[str] | None:
        """List the paths changed between base and rev, relative to the repository root.

        base is the branch tip before the push (``github.event.before``). The
        range covers every pushed commit, not just the last one.

        Returns:
            The changed paths, or None when the range is unknown: base is
            empty, all zeros (a newly created branch), or not present in the
            checkout (a shallow clone).
        """
        if not base.strip("0"):
            return None
        try:
            self._git("rev-parse", "--verify", "--quiet", f"{base}^{{commit}}", mutating=False)
        except CommandError:
            logger.warning("Push base not in checkout, changed paths unknown", base=base)
            return None
        out = self._git("diff", "--name-only", base, rev, mutating=False)
        return [line for line in out.splitlines() if line.strip()]

    def add(self, *paths: str) -> None:
        self._git("add", "--", *paths)

    def commit(self, message: str, *paths: str) -> str:
        """Commit and return the new HEAD sha.

        With paths, only those paths are committed and anything else already
        staged stays in the index. In dry run the commit is not made and the
        returned sha is "".
        """
        args = ["commit", "-m", message]
        if paths:
            args.extend(["--", *paths])
        self._git(*args)
        if self.dry_run:
            return ""
        return self._git("rev-parse", "HEAD", mutating=False).strip()

    def push(self, remote: str = "origin", branch: str | None = None) -> None:
        """Push HEAD to remote.

        A rejected push (non-fast-forward, protected branch) raises
        CommandError; nothing here fetches, rebases or retries.
        """
        refspec = f"HEAD:refs/heads/{branch}" if branch else "HEAD"
        logger.info("Pushing to remote", remote=remote, refspec=refspec)
        self._git("push", remote, refspec)
