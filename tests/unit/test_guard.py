# ABOUTME: Unit tests for the self-trigger guard
# ABOUTME: Tests author, marker and path-filter signals across strategies

import pytest

from release_sync.guard import LoopGuard, SkipRelease, paths_within
from release_sync.utils.git import CommitInfo


def _commit(author: str = "Alice Example", message: str = "Add greeting endpoint") -> CommitInfo:
    return CommitInfo(
        sha="1111111", author_name=author, author_email="a@example.com", message=message
    )


def _guard(strategy: str = "any", ignore_paths=("manifests/",)) -> LoopGuard:
    return LoopGuard(
        strategy=strategy,
        automation_name="GitHub Actions",
        skip_marker="[ci-skip]",
        ignore_paths=ignore_paths,
    )


@pytest.mark.unit
class TestPathsWithin:
    """Tests for paths_within."""

    def test_all_inside(self):
        assert paths_within(["manifests/deployment.yaml"], ["manifests/"]) is True

    def test_one_outside(self):
        assert paths_within(["manifests/deployment.yaml", "app.py"], ["manifests/"]) is False

    def test_prefix_without_slash(self):
        """Test "manifests" does not match "manifests-old/"."""
        assert paths_within(["manifests-old/x.yaml"], ["manifests"]) is False
        assert paths_within(["manifests/x.yaml"], ["manifests"]) is True

    def test_file_entry(self):
        """Test an entry naming a file matches exactly that file."""
        entries = ["manifests/deployment.yaml"]
        assert paths_within(["manifests/deployment.yaml"], entries) is True
        assert paths_within(["manifests/deployment.yaml.bak"], entries) is False
        assert paths_within(["manifests/service.yaml"], entries) is False

    def test_empty_paths_never_within(self):
        assert paths_within([], ["manifests/"]) is False

    def test_no_prefixes(self):
        assert paths_within(["manifests/x.yaml"], []) is False


@pytest.mark.unit
class TestLoopGuard:
    """Tests for LoopGuard.check."""

    def test_human_commit_proceeds(self):
        """Test an ordinary commit is released."""
        assert _guard().check(_commit(), ["app.py"]) is None

    def test_automation_author_skips(self):
        """Test a commit authored by the automation is skipped."""
        result = _guard().check(_commit(author="GitHub Actions"), ["app.py"])

        assert isinstance(result, SkipRelease)
        assert result.setting == "RELEASE_AUTOMATION_NAME"

    def test_marker_skips(self):
        """Test a commit carrying the skip marker is skipped."""
        result = _guard().check(
            _commit(message="[ci-skip] Update deployment image to abc1234-20250101000000"),
            ["app.py"],
        )

        assert isinstance(result, SkipRelease)
        assert result.setting == "RELEASE_SKIP_MARKER"
        assert "abc1234-20250101000000" in result.detail

    def test_author_strategy_ignores_marker(self):
        """Test author-only strategy releases marked human commits."""
        result = _guard("author").check(_commit(message="[ci-skip] docs"), ["app.py"])
        assert result is None

    def test_marker_strategy_ignores_author(self):
        """Test marker-only strategy releases commits that merely share the name."""
        result = _guard("marker").check(_commit(author="GitHub Actions"), ["app.py"])
        assert result is None

    def test_only_ignored_paths_skips(self):
        """Test a commit touching only the manifest directory is skipped."""
        result = _guard().check(_commit(), ["manifests/deployment.yaml"])

        assert isinstance(result, SkipRelease)
        assert result.setting == "RELEASE_IGNORE_PATHS"

    def test_path_filter_applies_to_every_strategy(self):
        """Test the path filter is independent of the identity strategy."""
        result = _guard("author").check(_commit(), ["manifests/deployment.yaml"])
        assert isinstance(result, SkipRelease)

    def test_unknown_changes_proceed(self):
        """Test no change list skips only the path filter."""
        assert _guard().check(_commit(), None) is None

    def test_no_ignore_paths(self):
        """Test the path filter is off without prefixes."""
        assert _guard(ignore_paths=()).check(_commit(), ["manifests/deployment.yaml"]) is None


@pytest.mark.unit
class TestSkipRelease:
    """Tests for SkipRelease."""

    def test_format_message(self):
        """Test message formatting."""
        skip = SkipRelease(
            reason="Commit was authored by the automation identity",
            detail="GitHub Actions",
            setting="RELEASE_AUTOMATION_NAME",
        )

        message = skip.format_message()
        assert "RELEASE SKIPPED" in message
        assert "GitHub Actions" in message
        assert "RELEASE_AUTOMATION_NAME" in message
