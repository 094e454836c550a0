# ABOUTME: Configuration management for the release-sync job
# ABOUTME: Handles environment variables, GitHub Actions aliases, and guard settings

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module handles all configuration for the release job. It:

1. READS environment variables (RELEASE_* plus the GITHUB_* variables that
   GitHub Actions exports to every step)
2. VALIDATES them (repository is "owner/name", log level is a real level)
3. PROVIDES typed access to settings throughout the job

=============================================================================
WHY ACCEPT GITHUB_* VARIABLES?
=============================================================================

Inside GitHub Actions the runner already exports what the job needs:

    GITHUB_SHA          -> commit to tag
    GITHUB_REPOSITORY   -> "owner/name" of the image and the manifest line
    GITHUB_ACTOR        -> registry username
    GITHUB_TOKEN        -> registry credential (when passed through `env:`)
    GITHUB_ENV          -> file where later steps read exported variables
    GITHUB_RUN_ID       -> run identifier attached to every log line

Each field accepts a RELEASE_* name first so the job can run on any other
CI system (or a laptop) without pretending to be GitHub.

=============================================================================
EXPLICIT IDENTITY, NO GLOBAL GIT CONFIG
=============================================================================

The shell version of this job ran `git config --global user.name ...` and
`git config --global --add safe.directory ...`. Here the automation identity
and the working directory are plain settings, and the git wrapper passes them
with `git -c` on each invocation. Nothing outside the job is mutated.
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# RELEASE SETTINGS
# =============================================================================

LoopGuardStrategy = Literal["author", "marker", "any"]


class ReleaseSettings(BaseSettings):
    """
    Settings for one run of the release job.

    USAGE:
    ------
        settings = load_settings()  # Reads from environment
        print(settings.owner, settings.repository_name)
        print(settings.manifest_file)  # workdir / manifest_path
    """

    model_config = SettingsConfigDict(
        env_prefix="RELEASE_",
        # Field "skip_marker" reads from RELEASE_SKIP_MARKER
        # Fields with validation_alias read from the names listed there instead
        extra="ignore",
        populate_by_name=True,
        # Allows ReleaseSettings(commit_sha=...) in code and tests
    )

    # -------------------------------------------------------------------------
    # TRIGGER INPUTS
    # -------------------------------------------------------------------------

    commit_sha: str = Field(
        default="",
        validation_alias=AliasChoices("RELEASE_COMMIT_SHA", "GITHUB_SHA"),
        description="Commit identifier the image is built from",
    )
    # Only the first 7 characters end up in the tag.

    repository: str = Field(
        default="",
        validation_alias=AliasChoices("RELEASE_REPOSITORY", "GITHUB_REPOSITORY"),
        description="Repository identity as owner/name",
    )

    run_id: str = Field(
        default="",
        validation_alias=AliasChoices("RELEASE_RUN_ID", "GITHUB_RUN_ID"),
        description="Identifier attached to every log line of this run",
    )
    # Empty means a short random ID is generated at startup.

    # -------------------------------------------------------------------------
    # REGISTRY
    # -------------------------------------------------------------------------

    registry: str = Field(default="ghcr.io", description="Container registry host")

    registry_username: str = Field(
        default="",
        validation_alias=AliasChoices("RELEASE_REGISTRY_USERNAME", "GITHUB_ACTOR"),
        description="Registry login user; falls back to the repository owner",
    )

    registry_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("RELEASE_REGISTRY_TOKEN", "GITHUB_TOKEN"),
        description="Registry credential passed to `docker login --password-stdin`",
    )
    # SecretStr keeps the token out of repr() and logs.
    # Empty means the runner is already logged in (docker/login-action).

    container_cli: str = Field(
        default="docker",
        description="Docker-compatible CLI used to build and push (docker, podman)",
    )

    build_context: str = Field(default=".", description="Build context relative to workdir")

    dockerfile: str | None = Field(default=None, description="Dockerfile path, if not default")

    alias_tag: str = Field(default="latest", description="Floating alias pushed after the tag")

    # -------------------------------------------------------------------------
    # REPOSITORY CHECKOUT AND MANIFEST
    # -------------------------------------------------------------------------

    workdir: Path = Field(default=Path("."), description="Git checkout the job operates on")

    manifest_path: Path = Field(
        default=Path("manifests/deployment.yaml"),
        description="Deployment descriptor, relative to workdir",
    )

    remote: str = Field(default="origin", description="Remote the manifest commit is pushed to")

    branch: str | None = Field(
        default=None,
        description="Branch to push to; None pushes HEAD to the same-named branch",
    )

    # -------------------------------------------------------------------------
    # LOOP PREVENTION
    # -------------------------------------------------------------------------

    automation_name: str = Field(
        default="GitHub Actions",
        description="Author name used for manifest commits",
    )

    automation_email: str = Field(
        default="github-actions@github.com",
        description="Author email used for manifest commits",
    )

    skip_marker: str = Field(
        default="[ci-skip]",
        description="Token prefixed to manifest commit messages",
    )

    loop_guard: LoopGuardStrategy = Field(
        default="any",
        description="How self-triggered commits are detected: author, marker or any",
    )
    # "author" trusts the commit author name alone, which anyone can set.
    # "marker" trusts the skip marker in the message.
    # "any" skips when either signal is present.

    ignore_paths: list[str] | None = Field(
        default=None,
        description=(
            "Pushes touching only these paths never release; entries ending in / are "
            "directories, others match a file or a directory of that name"
        ),
    )
    # None means "the directory holding the manifest".

    before_sha: str = Field(
        default="",
        description="Branch tip before the push (github.event.before)",
    )
    # Empty or all zeros disables the path filter.

    # -------------------------------------------------------------------------
    # OUTPUT AND OBSERVABILITY
    # -------------------------------------------------------------------------

    github_env: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("RELEASE_GITHUB_ENV", "GITHUB_ENV"),
        description="File that receives IMAGE_TAG=<tag> for later workflow steps",
    )

    dry_run: bool = Field(
        default=False,
        description="Log mutating commands instead of running them",
    )

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(default=False, description="Render logs as JSON lines")

    audit_log: Path | None = Field(default=None, description="Path to audit log file")

    # -------------------------------------------------------------------------
    # VALIDATORS
    # -------------------------------------------------------------------------

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        """
        Ensure repository is either unset or exactly "owner/name".

        The image reference and the manifest line are both built from the
        two halves, so "owner" alone or "a/b/c" would produce a reference
        that never matches.
        """
        v = v.strip()
        if not v:
            return v
        parts = v.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"repository must look like 'owner/name', got {v!r}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lower-case level names from the environment."""
        return v.upper() if isinstance(v, str) else v

    # -------------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def owner(self) -> str:
        """Repository owner, or "" when repository is unset."""
        return self.repository.split("/")[0] if self.repository else ""

    @property
    def repository_name(self) -> str:
        """Repository name, or "" when repository is unset."""
        return self.repository.split("/")[1] if self.repository else ""

    @property
    def login_username(self) -> str:
        return self.registry_username or self.owner

    @property
    def manifest_file(self) -> Path:
        """Absolute-or-workdir-relative path of the deployment descriptor."""
        return self.workdir / self.manifest_path

    @property
    def effective_ignore_paths(self) -> list[str]:
        """
        Path prefixes whose changes alone must not trigger a release.

        Defaults to the manifest's directory so the job's own commits are
        filtered even when the CI trigger has no paths-ignore rule.
        """
        if self.ignore_paths is not None:
            return self.ignore_paths
        parent = self.manifest_path.parent.as_posix()
        if parent in ("", "."):
            return []
        return [f"{parent}/"]


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings(**overrides: Any) -> ReleaseSettings:
    """
    Load settings from environment with validation.

    If RELEASE_ENV_FILE is set, additional variables are read from that file,
    which is handy when running the job locally:

        RELEASE_REPOSITORY=alice/myapp
        RELEASE_COMMIT_SHA=abc1234
        RELEASE_DRY_RUN=true

    Keyword overrides (from CLI flags) win over the environment.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ReleaseSettings(
        _env_file=os.environ.get("RELEASE_ENV_FILE"),
        **overrides,
    )
