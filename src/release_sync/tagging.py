# ABOUTME: Image tag generation for release-sync
# ABOUTME: Builds <sha>-<timestamp> tags and full registry image references

"""
Unique image tags and image references.

A tag looks like ``abc1234-20250101000000``: the first 7 characters of the
commit sha, a dash, and the UTC build time down to the second. The sha part
tells two commits built in the same second apart; the timestamp tells two
builds of the same commit apart. Two builds of the same commit within the
same second collide, and nothing here tries to prevent that.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

SHORT_SHA_LENGTH = 7
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def generate_image_tag(commit: str, now: datetime | None = None) -> str:
    """Return ``<commit[:7]>-<YYYYmmddHHMMSS>``.

    A commit shorter than 7 characters is used as-is. Aware datetimes are
    converted to UTC first; naive ones are taken to already be UTC.
    """
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is not None:
        now = now.astimezone(UTC)
    return f"{commit[:SHORT_SHA_LENGTH]}-{now.strftime(TIMESTAMP_FORMAT)}"


def export_tag(tag: str, env_file: Path, name: str = "IMAGE_TAG") -> None:
    """Append ``NAME=tag`` to a GitHub Actions environment file.

    Later steps of the same workflow job see it as ``${{ env.IMAGE_TAG }}``.
    """
    with env_file.open("a", encoding="utf-8") as f:
        f.write(f"{name}={tag}\n")
    logger.debug("Exported image tag", name=name, env_file=str(env_file))


@dataclass(frozen=True)
class ImageReference:
    """A fully qualified image reference: registry/owner/repository:tag."""

    registry: str
    owner: str
    repository: str
    tag: str

    @property
    def name(self) -> str:
        """Reference without the tag, e.g. ``ghcr.io/alice/myapp``."""
        return f"{self.registry}/{self.owner}/{self.repository}"

    @property
    def prefix(self) -> str:
        """Reference up to and including the colon before the tag."""
        return f"{self.name}:"

    def with_tag(self, tag: str) -> ImageReference:
        return replace(self, tag=tag)

    def __str__(self) -> str:
        return f"{self.name}:{self.tag}"
