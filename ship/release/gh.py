from __future__ import annotations

import json
import shutil
from collections.abc import Sequence
from pathlib import Path
from time import sleep

from ship.core.result import Err, Ok, Result
from ship.core.structured import as_obj_list, as_str_dict, get_str
from ship.git.repository import Repository
from ship.platform.process import NOT_RUN, ProcessError
from ship.platform.process import run as run_process
from ship.release.errors import ReleaseError, ReleaseErrorKind
from ship.release.publisher import PublishedRelease
from ship.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == NOT_RUN and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "release not found" in text or "http 404" in text


def run_gh_read(
    *,
    cwd: Path,
    cmd: list[str],
    kind: ReleaseErrorKind,
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ProcessError | ReleaseError]:
    """Run an idempotent ``gh`` read, retrying transient network failures.

    Non-transient failures come back as the raw ``ProcessError`` so callers
    can tell "not found" apart from real errors.
    """
    attempts = max(1, retry_attempts)
    last: ProcessError | None = None
    for attempt in range(attempts):
        result = run_process(cmd, cwd=cwd, timeout=timeout)
        if isinstance(result, Ok):
            return result

        last = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(last):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue
        return Err(last)

    hint = last.stderr.strip() if last is not None else None
    return Err(ReleaseError(kind=kind, message=message, hint=hint))


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


class GhReleaseStore:
    """Release store backed by git (tags) and the GitHub CLI (releases).

    Tags are created locally and pushed, so the release never points at a
    tag that only exists on one side.
    """

    def __init__(self, repo: Repository, *, slug: str | None = None) -> None:
        self.repo = repo
        self.slug = slug

    def _repo_args(self) -> list[str]:
        return ["--repo", self.slug] if self.slug else []

    def tag_exists(self, tag: str) -> Result[bool, ReleaseError]:
        local = self.repo.tag_exists(tag)
        if isinstance(local, Err):
            return Err(_vcs(local.error.message, f"cannot check tag {tag}"))
        if local.value:
            return Ok(True)

        remote = self.repo.remote_tag_exists(tag)
        if isinstance(remote, Err):
            return Err(_vcs(remote.error.message, f"cannot check remote tag {tag}"))
        return Ok(remote.value)

    def release_exists(self, tag: str) -> Result[bool, ReleaseError]:
        found = self.get_release(tag)
        if isinstance(found, Err):
            return found
        return Ok(found.value is not None)

    def get_release(self, tag: str) -> Result[PublishedRelease | None, ReleaseError]:
        result = run_gh_read(
            cwd=self.repo.path,
            cmd=[
                "gh",
                "release",
                "view",
                tag,
                *self._repo_args(),
                "--json",
                "tagName,url,isPrerelease,assets",
            ],
            kind="vcs_failed",
            message=f"failed to query release {tag}",
        )
        if isinstance(result, Err):
            error = result.error
            if isinstance(error, ReleaseError):
                return Err(error)
            if _is_not_found(error):
                return Ok(None)
            return Err(_vcs(error.stderr.strip(), f"failed to query release {tag}"))

        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return Err(_vcs(str(e), "gh release view returned invalid JSON"))

        data = as_str_dict(obj)
        if data is None:
            return Err(_vcs(None, "unexpected payload from gh release view"))

        assets: list[str] = []
        for item in as_obj_list(data.get("assets")) or []:
            d = as_str_dict(item)
            name = get_str(d, "name") if d is not None else None
            if name is not None:
                assets.append(name)

        prerelease = data.get("isPrerelease")
        return Ok(
            PublishedRelease(
                tag=get_str(data, "tagName") or tag,
                url=get_str(data, "url") or "",
                prerelease=prerelease if isinstance(prerelease, bool) else False,
                assets=tuple(assets),
            )
        )

    def create_tag(self, tag: str, *, sha: str, message: str) -> Result[None, ReleaseError]:
        created = self.repo.create_tag(tag, sha=sha, message=message)
        if isinstance(created, Err):
            return Err(_vcs(created.error.message, f"failed to create tag {tag}"))

        pushed = self.repo.push_tag(tag)
        if isinstance(pushed, Err):
            # The tag never left this machine; drop it so a re-run starts clean.
            self.repo.delete_tag(tag)
            return Err(_vcs(pushed.error.message, f"failed to push tag {tag}"))
        return Ok(None)

    def delete_tag(self, tag: str) -> Result[None, ReleaseError]:
        """Remove ``tag`` from the remote, then locally."""
        remote = self.repo.delete_remote_tag(tag)
        if isinstance(remote, Err):
            return Err(_vcs(remote.error.message, f"failed to delete remote tag {tag}"))
        local = self.repo.delete_tag(tag)
        if isinstance(local, Err):
            return Err(_vcs(local.error.message, f"failed to delete tag {tag}"))
        return Ok(None)

    def create_release(
        self, tag: str, *, title: str, notes: str, prerelease: bool
    ) -> Result[str, ReleaseError]:
        cmd = [
            "gh",
            "release",
            "create",
            tag,
            *self._repo_args(),
            "--verify-tag",
            "--title",
            title,
            "--notes-file",
            "-",
        ]
        if prerelease:
            cmd.append("--prerelease")

        result = run_process(cmd, cwd=self.repo.path, timeout=GH_TIMEOUT_SECONDS, input_text=notes)
        if isinstance(result, Err):
            return Err(_vcs(result.error.detail(), f"gh release create {tag} failed"))
        # gh prints the release URL on success.
        lines = [ln.strip() for ln in result.value.splitlines() if ln.strip()]
        return Ok(lines[-1] if lines else "")

    def upload_assets(self, tag: str, files: Sequence[Path]) -> Result[None, ReleaseError]:
        if not files:
            return Ok(None)
        cmd = ["gh", "release", "upload", tag, *self._repo_args(), *[str(f) for f in files]]
        result = run_process(cmd, cwd=self.repo.path, timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(_vcs(result.error.detail(), f"gh release upload {tag} failed"))
        return Ok(None)


def _vcs(detail: str | None, message: str) -> ReleaseError:
    return ReleaseError(kind="vcs_failed", message=message, hint=detail or None)
