from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from ship.core.result import Err, Ok
from ship.git.repository import Repository
from ship.release.changelog import GitChangelog, insert_entry

NOTES_130 = "## v1.3.0\n\n### Features\n\n- add export (bbbbbbbb)\n"
NOTES_131 = "## v1.3.1\n\n### Bug Fixes\n\n- fix export (cccccccc)\n"


def test_insert_into_empty_document() -> None:
    assert insert_entry("", NOTES_130) == f"# Changelog\n\n{NOTES_130}"


def test_newest_entry_first() -> None:
    doc = insert_entry(insert_entry("", NOTES_130), NOTES_131)
    assert doc == f"# Changelog\n\n{NOTES_131}\n{NOTES_130}"
    assert doc.index("v1.3.1") < doc.index("v1.3.0")


def test_document_without_title_gets_one() -> None:
    doc = insert_entry("## v0.9.0\n\n- old\n", NOTES_130)
    assert doc.startswith("# Changelog\n\n## v1.3.0")
    assert doc.endswith("## v0.9.0\n\n- old\n")


def test_bom_is_dropped() -> None:
    doc = insert_entry("\ufeff# Changelog\n", NOTES_130)
    assert doc == f"# Changelog\n\n{NOTES_130}"


def _git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return proc.stdout.strip()


def _repo_with_remote(tmp_path: Path) -> Repository:
    remote = tmp_path / "remote.git"
    remote.mkdir()
    _git(remote, "init", "-q", "--bare")

    path = tmp_path / "repo"
    path.mkdir()
    _git(path, "init", "-q", "-b", "main")
    _git(path, "config", "user.name", "Test")
    _git(path, "config", "user.email", "test@example.invalid")
    _git(path, "config", "commit.gpgsign", "false")
    _git(path, "remote", "add", "origin", str(remote))
    _git(path, "commit", "-q", "--allow-empty", "-m", "chore: init")
    return Repository(path)


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestGitChangelog:
    def test_append_commits_and_pushes(self, tmp_path: Path) -> None:
        repo = _repo_with_remote(tmp_path)
        changelog = GitChangelog(repo, rel_path="CHANGELOG.md", branch="main")

        result = changelog.append("v1.3.0", NOTES_130)

        assert isinstance(result, Ok)
        assert (repo.path / "CHANGELOG.md").read_text(encoding="utf-8").startswith("# Changelog")
        assert _git(repo.path, "log", "-1", "--format=%s") == "chore(release): v1.3.0 [skip ci]"
        assert _git(tmp_path / "remote.git", "rev-parse", "refs/heads/main") == result.value

    def test_push_failure_is_partial_failure(self, tmp_path: Path) -> None:
        repo = _repo_with_remote(tmp_path)
        _git(repo.path, "remote", "set-url", "origin", str(tmp_path / "missing.git"))
        changelog = GitChangelog(repo, rel_path="CHANGELOG.md", branch="main")

        result = changelog.append("v1.3.0", NOTES_130)

        assert isinstance(result, Err)
        assert result.error.kind == "publish_partial_failure"
        assert "push" in result.error.message
