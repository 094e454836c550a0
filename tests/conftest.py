# ABOUTME: Pytest fixtures and configuration for release-sync tests
# ABOUTME: Provides a scripted command runner, a sample checkout, and settings

import os
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest
from pydantic import SecretStr

from release_sync.config import ReleaseSettings
from release_sync.utils.commands import CommandError, CommandResult, CommandRunner

DEPLOYMENT_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: "myapp-deployment"
  labels:
    app: "myapp"
    owner: "alice"
spec:
  replicas: 1
  selector:
    matchLabels:
      app: "myapp"
  template:
    metadata:
      labels:
        app: "myapp"
    spec:
      containers:
        - name: "myapp"
          image: ghcr.io/alice/myapp:oldtag
          ports:
            - containerPort: 3000
---
apiVersion: v1
kind: Service
metadata:
  name: "myapp-service"
spec:
  selector:
    app: "myapp"
  ports:
    - port: 80
      targetPort: 3000
"""

REGISTRY_TOKEN = "ghp_s3cr3tT0kenValue"


def strip_git_options(args: Sequence[str]) -> list[str]:
    """Drop the leading `-c key=value` pairs so tests can match on the subcommand."""
    rest = list(args[1:])
    while len(rest) >= 2 and rest[0] == "-c":
        rest = rest[2:]
    return [args[0], *rest]


def render_commit(
    sha: str = "1111111aaaaaaa",
    author_name: str = "Alice Example",
    author_email: str = "alice@example.com",
    message: str = "Add greeting endpoint",
) -> str:
    """Render what `git log -1 --pretty=format:%H%x00%an%x00%ae%x00%B` prints."""
    return f"{sha}\x00{author_name}\x00{author_email}\x00{message}\n"


class FakeRunner(CommandRunner):
    """Command runner that records calls and returns scripted outcomes.

    Rules match on the command with git's `-c` options stripped, by prefix:

        runner.on("git", "log", stdout=render_commit())
        runner.fail("docker", "push", stderr="denied")

    The most recently added matching rule wins. Unmatched commands succeed
    with empty output.
    """

    def __init__(self, dry_run: bool = False, secrets: Sequence[str] = ()) -> None:
        super().__init__(dry_run=dry_run, secrets=secrets)
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.cwds: list[object] = []
        self._rules: list[tuple[tuple[str, ...], str | tuple[int, str]]] = []

    def on(self, *prefix: str, stdout: str = "") -> None:
        self._rules.append((prefix, stdout))

    def fail(self, *prefix: str, returncode: int = 1, stderr: str = "error") -> None:
        self._rules.append((prefix, (returncode, stderr)))

    @property
    def history(self) -> list[list[str]]:
        return [strip_git_options(c) for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(tuple(c[: len(prefix)]) == prefix for c in self.history)

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | str | None = None,
        input: str | None = None,  # noqa: A002
        mutating: bool = True,
    ) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        self.inputs.append(input)
        self.cwds.append(cwd)

        if self.dry_run and mutating:
            return CommandResult(args=args, returncode=0, stdout="", stderr="")

        stripped = strip_git_options(args)
        for prefix, outcome in reversed(self._rules):
            if tuple(stripped[: len(prefix)]) == prefix:
                if isinstance(outcome, tuple):
                    returncode, stderr = outcome
                    raise CommandError(returncode, self.format_command(args), self.mask(stderr))
                return CommandResult(args=args, returncode=0, stdout=outcome, stderr="")
        return CommandResult(args=args, returncode=0, stdout="", stderr="")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CI runner's own GITHUB_* / RELEASE_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith(("GITHUB_", "RELEASE_")):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def commit_output():
    """Factory rendering `git log -1` output for the loop guard."""
    return render_commit


@pytest.fixture
def registry_token() -> str:
    return REGISTRY_TOKEN


@pytest.fixture
def deployment_yaml() -> str:
    return DEPLOYMENT_YAML


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a scripted runner that knows the registry token as a secret."""
    return FakeRunner(secrets=[REGISTRY_TOKEN])


@pytest.fixture
def dry_fake_runner() -> FakeRunner:
    """Create a scripted runner in dry-run mode."""
    return FakeRunner(dry_run=True, secrets=[REGISTRY_TOKEN])


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    """Create a checkout directory with a deployment descriptor."""
    manifest = tmp_path / "manifests" / "deployment.yaml"
    manifest.parent.mkdir(parents=True)
    manifest.write_text(DEPLOYMENT_YAML, encoding="utf-8")
    return tmp_path


@pytest.fixture
def release_settings(checkout: Path) -> ReleaseSettings:
    """Create settings for alice/myapp operating on the sample checkout."""
    return ReleaseSettings(
        commit_sha="abc1234def567890",
        repository="alice/myapp",
        registry_username="alice",
        registry_token=SecretStr(REGISTRY_TOKEN),
        workdir=checkout,
    )


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2025-01-01T00:00:00Z."""
    return lambda: datetime(2025, 1, 1, 0, 0, 0, tzinfo=UTC)
