"""Release publisher: tag, release, assets, changelog.

Steps run in a fixed order and are never retried automatically:

1. create the tag at the commit that triggered the run
2. create the release with the notes as its body
3. attach every artifact (and its checksum file)
4. prepend the notes to the changelog and commit it to the source branch

A tag or release that already exists is a ``publish_conflict`` and nothing
is created. If step 2 fails the tag is deleted again. Failures after the
release exists (or a tag that cannot be deleted) are reported with a
reconciliation hint; a failure of step 4 alone is a degraded success.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from ship.core.result import Err, Ok, Result
from ship.output.console import ConsoleProtocol, Style
from ship.release.errors import ReleaseError
from ship.release.model import BuildArtifact, ReleaseRecord, ResolutionResult


@dataclass(frozen=True, slots=True)
class PublishedRelease:
    """What the store knows about a release."""

    tag: str
    url: str
    prerelease: bool
    assets: tuple[str, ...] = ()


class ReleaseStore(Protocol):
    def tag_exists(self, tag: str) -> Result[bool, ReleaseError]: ...

    def release_exists(self, tag: str) -> Result[bool, ReleaseError]: ...

    def create_tag(self, tag: str, *, sha: str, message: str) -> Result[None, ReleaseError]: ...

    def delete_tag(self, tag: str) -> Result[None, ReleaseError]: ...

    def create_release(
        self, tag: str, *, title: str, notes: str, prerelease: bool
    ) -> Result[str, ReleaseError]: ...

    def upload_assets(self, tag: str, files: Sequence[Path]) -> Result[None, ReleaseError]: ...

    def get_release(self, tag: str) -> Result[PublishedRelease | None, ReleaseError]: ...


class ChangelogWriter(Protocol):
    def append(self, tag: str, notes: str) -> Result[str, ReleaseError]:
        """Record the notes and commit them; returns the commit sha."""
        ...


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    record: ReleaseRecord
    changelog_commit: str | None = None
    changelog_error: ReleaseError | None = None

    @property
    def degraded(self) -> bool:
        return self.changelog_error is not None


def _conflict(tag: str, what: str) -> ReleaseError:
    return ReleaseError(
        kind="publish_conflict",
        message=f"{tag} is already published ({what} exists)",
        hint="Nothing was changed. A new release needs new releasable commits.",
    )


def _after_tag(tag: str, message: str, detail: str | None) -> ReleaseError:
    return ReleaseError(
        kind="publish_failed",
        message=f"{message}; tag {tag} already exists",
        hint=(
            f"{detail + '. ' if detail else ''}Reconcile manually: finish or delete the "
            f"release and tag {tag} before re-running."
        ),
    )


def _cancelled_after_tag(tag: str) -> ReleaseError:
    return ReleaseError(
        kind="cancelled",
        message=f"run cancelled while publishing; tag {tag} already exists",
        hint=f"Reconcile manually: finish or delete the release and tag {tag}.",
    )


def publish(
    *,
    resolution: ResolutionResult,
    artifacts: Sequence[BuildArtifact],
    head_sha: str,
    store: ReleaseStore,
    changelog: ChangelogWriter,
    console: ConsoleProtocol,
    cancel: threading.Event | None = None,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> Result[PublishOutcome, ReleaseError]:
    if not resolution.would_release:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message="refusing to publish a resolution that does not release",
            )
        )

    tag = resolution.git_tag

    def cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    # Conflict check before any write: re-running a published version is a no-op.
    exists = store.tag_exists(tag)
    if isinstance(exists, Err):
        return exists
    if exists.value:
        return Err(_conflict(tag, "tag"))

    rel_exists = store.release_exists(tag)
    if isinstance(rel_exists, Err):
        return rel_exists
    if rel_exists.value:
        return Err(_conflict(tag, "release"))

    if cancelled():
        return Err(ReleaseError(kind="cancelled", message="run cancelled before publishing"))

    console.print(f"tag {tag} -> {head_sha[:8]}", Style.DIM)
    created = store.create_tag(tag, sha=head_sha, message=f"Release {tag}")
    if isinstance(created, Err):
        return Err(
            ReleaseError(
                kind="publish_failed",
                message=f"failed to create tag {tag}",
                hint=created.error.hint or created.error.message,
            )
        )

    if cancelled():
        return Err(_cancelled_after_tag(tag))

    console.print(f"release {tag}", Style.DIM)
    url = store.create_release(
        tag,
        title=tag,
        notes=resolution.release_notes,
        prerelease=resolution.is_prerelease,
    )
    if isinstance(url, Err):
        detail = url.error.hint or url.error.message
        # No release exists yet, so dropping the tag leaves nothing behind.
        console.print(f"delete tag {tag}", Style.DIM)
        rolled_back = store.delete_tag(tag)
        if isinstance(rolled_back, Err):
            return Err(_after_tag(tag, "failed to create release", detail))
        return Err(
            ReleaseError(
                kind="publish_failed",
                message=f"failed to create release {tag}",
                hint=detail,
            )
        )

    if cancelled():
        return Err(_cancelled_after_tag(tag))

    files: list[Path] = []
    for a in artifacts:
        files.extend(a.files)
    if files:
        console.print(f"upload {len(files)} file(s)", Style.DIM)
        uploaded = store.upload_assets(tag, files)
        if isinstance(uploaded, Err):
            return Err(
                _after_tag(
                    tag, "failed to attach artifacts", uploaded.error.hint or uploaded.error.message
                )
            )

    record = ReleaseRecord(
        tag=tag,
        artifacts=tuple(artifacts),
        changelog=resolution.release_notes,
        published_at=now(),
        url=url.value,
        prerelease=resolution.is_prerelease,
    )

    if cancelled():
        return Ok(
            PublishOutcome(
                record=record,
                changelog_error=ReleaseError(
                    kind="publish_partial_failure",
                    message="run cancelled before the changelog commit",
                    hint=f"Release {tag} exists. Add its notes to the changelog manually.",
                ),
            )
        )

    committed = changelog.append(tag, resolution.release_notes)
    if isinstance(committed, Err):
        return Ok(
            PublishOutcome(
                record=record,
                changelog_error=ReleaseError(
                    kind="publish_partial_failure",
                    message=f"release {tag} published but the changelog commit failed",
                    hint=(
                        f"{committed.error.pretty()}. Do not re-run the release; "
                        "commit the changelog entry manually."
                    ),
                ),
            )
        )

    return Ok(PublishOutcome(record=record, changelog_commit=committed.value))
