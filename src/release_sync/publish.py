# ABOUTME: Container image build and registry publish step
# ABOUTME: Pushes the unique tag first, then moves the floating alias onto it

"""Image publishing.

Order matters: the uniquely tagged image is pushed before the alias is
retagged and pushed. If the alias push succeeds, the alias therefore points
at a tag that already exists in the registry. If it fails, the unique tag
stays published and the alias keeps its previous target; nothing is cleaned
up or retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

    from release_sync.tagging import ImageReference
    from release_sync.utils.commands import CommandRunner

logger = structlog.get_logger(__name__)


@dataclass
class PublishResult:
    """The two references pushed by one publish."""

    image: ImageReference
    alias: ImageReference


class ImagePublisher:
    """Builds and pushes images with a docker-compatible CLI."""

    def __init__(
        self,
        runner: CommandRunner,
        registry: str,
        username: str = "",
        token: str = "",
        container_cli: str = "docker",
        build_context: str = ".",
        dockerfile: str | None = None,
        workdir: Path | None = None,
    ) -> None:
        """Initialize image publisher.

        Args:
            runner: Command runner; should already know the token as a secret
            registry: Registry host, e.g. ghcr.io
            username: Registry login user
            token: Registry credential; empty skips login
            container_cli: docker, podman, or another compatible CLI
            build_context: Build context directory
            dockerfile: Dockerfile path, None for <context>/Dockerfile
            workdir: Directory the CLI runs in
        """
        self._runner = runner
        self._registry = registry
        self._username = username
        self._token = token
        self._cli = container_cli
        self._build_context = build_context
        self._dockerfile = dockerfile
        self._workdir = workdir

    def _run(self, *args: str, input: str | None = None) -> None:  # noqa: A002
        self._runner.run([self._cli, *args], cwd=self._workdir, input=input)

    def login(self) -> bool:
        """Log in to the registry with the token on stdin.

        Returns:
            True if a login was performed, False if no token is configured
        """
        if not self._token:
            logger.info(
                "No registry token configured, using existing login", registry=self._registry
            )
            return False

        logger.info("Logging in to registry", registry=self._registry, username=self._username)
        self._run(
            "login",
            self._registry,
            "--username",
            self._username,
            "--password-stdin",
            input=self._token,
        )
        return True

    def build(self, image: ImageReference) -> None:
        args = ["build", "-t", str(image)]
        if self._dockerfile:
            args.extend(["-f", self._dockerfile])
        args.append(self._build_context)
        logger.info("Building image", image=str(image), context=self._build_context)
        self._run(*args)

    def push(self, image: ImageReference) -> None:
        logger.info("Pushing image", image=str(image))
        self._run("push", str(image))

    def publish(self, image: ImageReference, alias: str = "latest") -> PublishResult:
        """Build image, push it, then retag and push the alias.

        Any failure raises CommandError and the remaining commands are not run.
        """
        alias_image = image.with_tag(alias)

        self.build(image)
        self.push(image)

        logger.info("Updating alias", alias=str(alias_image), image=str(image))
        self._run("tag", str(image), str(alias_image))
        self.push(alias_image)

        return PublishResult(image=image, alias=alias_image)
