# ABOUTME: Release job orchestration and CLI entry point
# ABOUTME: Runs tag, guard, publish and manifest steps in strict order

"""Release job - unique tags and manifest sync for every push."""

from __future__ import annotations

import argparse
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import ValidationError

from release_sync import __version__
from release_sync.config import ReleaseSettings, load_settings
from release_sync.guard import LoopGuard, SkipRelease
from release_sync.manifest import ManifestUpdate, ManifestUpdater
from release_sync.publish import ImagePublisher, PublishResult
from release_sync.tagging import ImageReference, export_tag, generate_image_tag
from release_sync.utils.commands import CommandError, CommandRunner
from release_sync.utils.git import GitIdentity, GitRepository
from release_sync.utils.logging import AuditLogger, configure_logging, set_run_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

logger = structlog.get_logger(__name__)


class ConfigurationError(Exception):
    """Required input missing before any side effect happened."""


class StepFailed(Exception):
    """A job step failed; the steps after it did not run."""

    def __init__(self, step: str, error: Exception) -> None:
        self.step = step
        self.error = error
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"Step '{self.step}' failed: {self.error}"


@dataclass
class JobResult:
    """What one run did."""

    status: Literal["completed", "skipped"]
    tag: str
    skip: SkipRelease | None = None
    publish: PublishResult | None = None
    manifest: ManifestUpdate | None = None


class ReleaseJob:
    """One run of the release job.

    Steps, in order; a failing step stops the run:

    1. generate_tag     - <sha7>-<timestamp>, exported to $GITHUB_ENV if set
    2. loop_guard       - stop quietly if the commit came from this job
    3. registry_login   - only when a token is configured
    4. publish_image    - build, push unique tag, push alias
    5. update_manifest  - patch descriptor, commit with skip marker, push
    """

    def __init__(
        self,
        settings: ReleaseSettings,
        runner: CommandRunner | None = None,
        clock: Callable[[], datetime] | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._settings = settings
        token = settings.registry_token.get_secret_value()
        self._runner = runner or CommandRunner(dry_run=settings.dry_run, secrets=[token])
        self._clock = clock or (lambda: datetime.now(UTC))
        self._audit = audit or AuditLogger(settings.audit_log)

        self._repo = GitRepository(
            self._runner,
            settings.workdir,
            GitIdentity(name=settings.automation_name, email=settings.automation_email),
        )
        self._guard = LoopGuard(
            strategy=settings.loop_guard,
            automation_name=settings.automation_name,
            skip_marker=settings.skip_marker,
            ignore_paths=settings.effective_ignore_paths,
        )
        self._publisher = ImagePublisher(
            self._runner,
            registry=settings.registry,
            username=settings.login_username,
            token=token,
            container_cli=settings.container_cli,
            build_context=settings.build_context,
            dockerfile=settings.dockerfile,
            workdir=settings.workdir,
        )
        self._updater = ManifestUpdater(
            self._repo,
            skip_marker=settings.skip_marker,
            remote=settings.remote,
            branch=settings.branch,
        )

    @contextmanager
    def _step(self, name: str, target: str) -> Iterator[None]:
        try:
            yield
        except (CommandError, OSError, ValueError) as e:
            self._audit.log_error(name, target, self._runner.mask(str(e)))
            raise StepFailed(name, e) from e

    def _validate(self) -> None:
        missing: list[str] = []
        if not self._settings.commit_sha:
            missing.append("commit sha (RELEASE_COMMIT_SHA or GITHUB_SHA)")
        if not self._settings.repository:
            missing.append("repository (RELEASE_REPOSITORY or GITHUB_REPOSITORY)")
        if missing:
            raise ConfigurationError(f"Missing required input: {', '.join(missing)}")

        workdir = self._settings.workdir.resolve()
        manifest = self._settings.manifest_file.resolve()
        if not manifest.is_relative_to(workdir):
            raise ConfigurationError(
                f"Manifest {manifest} is outside the checkout {workdir} (RELEASE_MANIFEST_PATH)"
            )

    def run(self) -> JobResult:
        """Run every step and return what happened.

        Raises:
            ConfigurationError: commit sha or repository not provided, or the
                manifest lies outside the checkout.
            StepFailed: a git or container command failed, or the descriptor
                could not be read or written.
        """
        self._validate()
        s = self._settings

        tag = generate_image_tag(s.commit_sha, self._clock())
        image = ImageReference(
            registry=s.registry,
            owner=s.owner,
            repository=s.repository_name,
            tag=tag,
        )
        logger.info("Generated image tag", tag=tag, image=str(image))
        with self._step("generate_tag", tag):
            if s.github_env:
                export_tag(tag, s.github_env)
        self._audit.log_step("generate_tag", str(image))

        with self._step("loop_guard", "HEAD"):
            commit = self._repo.last_commit()
            changed = (
                self._repo.changed_paths(s.before_sha) if self._guard.ignore_paths else None
            )
        skip = self._guard.check(commit, changed)
        if skip:
            logger.info("Release skipped", reason=skip.reason, commit=commit.sha)
            self._audit.log_skipped("loop_guard", commit.sha, skip.reason)
            return JobResult(status="skipped", tag=tag, skip=skip)

        with self._step("registry_login", s.registry):
            self._publisher.login()

        with self._step("publish_image", str(image)):
            published = self._publisher.publish(image, alias=s.alias_tag)
        self._audit.log_step(
            "publish_image", str(image), details={"alias": str(published.alias)}
        )

        with self._step("update_manifest", s.manifest_path.as_posix()):
            update = self._updater.update(s.manifest_file, image)
        self._audit.log_step(
            "update_manifest",
            s.manifest_path.as_posix(),
            result="success" if update.changed else "unchanged",
            details={"commit": update.commit_sha} if update.commit_sha else None,
        )

        return JobResult(status="completed", tag=tag, publish=published, manifest=update)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-sync",
        description=(
            "Build and publish a uniquely tagged container image, then point the "
            "deployment manifest at it. Settings come from RELEASE_* and GITHUB_* "
            "environment variables; flags override them."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="log build, push and commit commands instead of running them",
    )
    parser.add_argument("--workdir", help="git checkout to operate on")
    parser.add_argument("--manifest", help="deployment descriptor, relative to the workdir")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="render logs as JSON lines",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the release job and return the process exit status."""
    args = build_parser().parse_args(argv)
    overrides: dict[str, Any] = {
        "dry_run": args.dry_run,
        "workdir": args.workdir,
        "manifest_path": args.manifest,
        "log_level": args.log_level,
        "json_logs": args.json_logs,
    }

    try:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        configure_logging(level="INFO")
        logger.error("Invalid configuration", error=str(e))
        return 1

    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    set_run_id(settings.run_id)
    logger.info(
        "release-sync starting",
        version=__version__,
        repository=settings.repository,
        commit=settings.commit_sha,
        dry_run=settings.dry_run,
    )

    try:
        result = ReleaseJob(settings).run()
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1
    except StepFailed as e:
        logger.error("Release failed", step=e.step, error=str(e.error))
        return 1
    except KeyboardInterrupt:
        logger.info("Release interrupted")
        return 130

    if result.skip:
        logger.info("Nothing to release", detail=result.skip.format_message())
    else:
        logger.info(
            "Release completed",
            tag=result.tag,
            manifest_changed=bool(result.manifest and result.manifest.changed),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
