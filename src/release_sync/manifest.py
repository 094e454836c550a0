# ABOUTME: Deployment descriptor patch-and-commit step
# ABOUTME: Rewrites the image line to the new tag, commits it with a skip marker and pushes

"""
Manifest sync.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

After the image is published, the deployment descriptor in Git must point at
it so the GitOps controller rolls it out. The descriptor is treated as plain
text, not YAML: one line of the form

    image: ghcr.io/<owner>/<repo>:<anything>

is rewritten to

    image: ghcr.io/<owner>/<repo>:<new tag>

Everything else in the file (comments, quoting, key order, line endings)
stays exactly as it was, which a YAML round trip would not guarantee.

=============================================================================
NO MATCH IS NOT AN ERROR
=============================================================================

If the descriptor has no line with the expected prefix (wrong owner, a
different registry, a digest reference), the file is left byte-for-byte
unchanged and nothing is committed. The run still succeeds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

    from release_sync.tagging import ImageReference
    from release_sync.utils.git import GitRepository

logger = structlog.get_logger(__name__)


@dataclass
class ManifestUpdate:
    """Outcome of one manifest sync."""

    path: Path
    changed: bool
    commit_sha: str | None = None


def image_line_pattern(image: ImageReference) -> re.Pattern[str]:
    """Match ``image: <registry>/<owner>/<repo>:`` and the rest of its line.

    The tail stops before any line ending so CRLF files keep their \\r.
    """
    return re.compile(r"image: " + re.escape(image.prefix) + r"[^\r\n]*")


def patch_descriptor(path: Path, image: ImageReference, write: bool = True) -> bool:
    """Point every matching image line of the descriptor at image.

    Args:
        path: Descriptor file
        image: New image reference
        write: False computes the result without touching the file (dry run)

    Returns:
        True if the file was rewritten, False if nothing matched or the line
        already carried this tag.
    """
    # newline="" keeps \r\n and \n exactly as they are on disk
    with path.open(encoding="utf-8", newline="") as f:
        original = f.read()

    replacement = f"image: {image}"
    patched, count = image_line_pattern(image).subn(lambda _m: replacement, original)

    if count == 0:
        logger.warning("No image line matched", path=str(path), prefix=f"image: {image.prefix}")
        return False

    if patched == original:
        logger.info("Descriptor already references image", path=str(path), image=str(image))
        return False

    if write:
        with path.open("w", encoding="utf-8", newline="") as f:
            f.write(patched)

    logger.info("Descriptor updated", path=str(path), image=str(image), lines=count)
    return True


def commit_message(skip_marker: str, tag: str) -> str:
    return f"{skip_marker} Update deployment image to {tag}"


class ManifestUpdater:
    """Patches the descriptor and publishes the change to the remote."""

    def __init__(
        self,
        repo: GitRepository,
        skip_marker: str,
        remote: str = "origin",
        branch: str | None = None,
    ) -> None:
        self._repo = repo
        self._skip_marker = skip_marker
        self._remote = remote
        self._branch = branch

    def update(self, path: Path, image: ImageReference) -> ManifestUpdate:
        """Patch, stage, commit and push the descriptor.

        Only the descriptor is staged and committed; anything else already
        in the index stays there. When the descriptor did not change there is no
        commit and no push.

        Raises:
            CommandError: git add, commit or push failed (e.g. the push was
                rejected as non-fast-forward). Nothing is retried.
        """
        if not patch_descriptor(path, image, write=not self._repo.dry_run):
            return ManifestUpdate(path=path, changed=False)

        relative = path.resolve().relative_to(self._repo.workdir.resolve())

        self._repo.add(relative.as_posix())
        sha = self._repo.commit(
            commit_message(self._skip_marker, image.tag), relative.as_posix()
        )
        self._repo.push(self._remote, self._branch)

        logger.info("Manifest change pushed", path=str(path), commit=sha, remote=self._remote)
        return ManifestUpdate(path=path, changed=True, commit_sha=sha)
