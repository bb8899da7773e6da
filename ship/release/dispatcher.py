"""Build dispatcher: fan a resolved version out to every build target.

Targets are independent. A failing target is recorded and its siblings keep
running; the dispatch as a whole fails if any target failed, and the
successful artifacts are kept so they can be inspected or reused.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from time import monotonic
from typing import Literal, Protocol

from ship.core.result import Err, Ok, Result
from ship.output.console import ConsoleProtocol, Style
from ship.platform.files import atomic_write_text, sha256_file
from ship.release.config import artifact_name
from ship.release.model import BuildArtifact, BuildTarget, ResolutionResult
from ship.release.semver import Version

DispatchStatus = Literal["skipped", "succeeded", "failed"]


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """Everything a backend gets for one target."""

    target: BuildTarget
    version: str
    options: dict[str, str]
    output: Path


class BuildBackend(Protocol):
    def build(self, request: BuildRequest) -> Result[Path, str]: ...


@dataclass(frozen=True, slots=True)
class TargetFailure:
    target: BuildTarget
    message: str


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    status: DispatchStatus
    artifacts: tuple[BuildArtifact, ...] = ()
    failures: tuple[TargetFailure, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


SKIPPED = DispatchOutcome(status="skipped")


def inject_version(target: BuildTarget, version: Version) -> dict[str, str]:
    """Expand version placeholders in the target options.

    Supported placeholders: ``{version}``, ``{major}``, ``{minor}``,
    ``{patch}``, ``{os}``, ``{arch}``. The plain version is also exposed
    under the ``version`` key.
    """
    values = {
        "version": str(version),
        "major": str(version.base.major),
        "minor": str(version.base.minor),
        "patch": str(version.base.patch),
        "os": target.os,
        "arch": target.arch,
    }
    out: dict[str, str] = {}
    for key, raw in target.options:
        out[key] = _expand(raw, values)
    out.setdefault("version", str(version))
    return out


def _expand(template: str, values: dict[str, str]) -> str:
    out = template
    for key, value in values.items():
        out = out.replace("{" + key + "}", value)
    return out


def _checksum_line(digest: str, filename: str) -> str:
    # Same layout as `sha256sum`, so `sha256sum -c` can verify downloads.
    return f"{digest}  {filename}\n"


def _build_one(
    *,
    backend: BuildBackend,
    request: BuildRequest,
) -> Result[BuildArtifact, str]:
    try:
        request.output.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(f"cannot create output directory: {e}")

    try:
        built = backend.build(request)
    except Exception as e:  # noqa: BLE001 - a crashing backend is a target failure
        return Err(f"backend raised {type(e).__name__}: {e}")
    if isinstance(built, Err):
        return built

    path = built.value
    if not path.is_file():
        return Err(f"backend reported success but produced no file at {path}")

    try:
        digest = sha256_file(path)
        checksum_path = path.with_name(path.name + ".sha256")
        atomic_write_text(checksum_path, _checksum_line(digest, path.name))
        size = path.stat().st_size
    except OSError as e:
        return Err(f"failed to checksum {path.name}: {e}")

    return Ok(
        BuildArtifact(
            name=path.name,
            path=path,
            sha256=digest,
            size=size,
            target=request.target,
            checksum_path=checksum_path,
        )
    )


def plan_requests(
    *,
    name: str,
    version: Version,
    targets: Sequence[BuildTarget],
    out_dir: Path,
) -> list[BuildRequest]:
    """Deterministic per-target requests; names depend only on inputs."""
    v = str(version)
    return [
        BuildRequest(
            target=t,
            version=v,
            options=inject_version(t, version),
            output=out_dir / artifact_name(name=name, version=v, target=t),
        )
        for t in targets
    ]


def dispatch(
    *,
    resolution: ResolutionResult,
    targets: Sequence[BuildTarget],
    backend: BuildBackend,
    name: str,
    out_dir: Path,
    console: ConsoleProtocol,
    max_workers: int = 4,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> DispatchOutcome:
    """Build every target for ``resolution.next_version``.

    Returns ``SKIPPED`` without touching the backend when nothing is to be
    released. Blocks until every target is terminal, the ``timeout`` budget
    runs out, or ``cancel`` is set; unfinished targets are reported as
    failures in the last two cases.
    """
    if not resolution.would_release or resolution.next_version is None:
        return SKIPPED

    requests = plan_requests(
        name=name,
        version=resolution.next_version,
        targets=targets,
        out_dir=out_dir,
    )
    if not requests:
        return DispatchOutcome(status="succeeded")

    results: dict[int, Result[BuildArtifact, str]] = {}
    deadline = None if timeout is None else monotonic() + timeout

    pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="ship-build")
    try:
        futures: dict[Future[Result[BuildArtifact, str]], int] = {}
        for i, req in enumerate(requests):
            console.print(f"build {req.target.id}: {req.output.name}", Style.DIM)
            futures[pool.submit(_build_one, backend=backend, request=req)] = i

        pending = set(futures)
        stop_reason: str | None = None
        while pending:
            if cancel is not None and cancel.is_set():
                stop_reason = "cancelled"
                break
            remaining = None if deadline is None else deadline - monotonic()
            if remaining is not None and remaining <= 0:
                stop_reason = "timed out"
                break

            poll = 0.5 if remaining is None else min(0.5, remaining)
            done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
            for fut in done:
                i = futures[fut]
                results[i] = fut.result()
                _report(console, requests[i].target, results[i])

        for fut in pending:
            fut.cancel()
            results[futures[fut]] = Err(stop_reason or "cancelled")
    finally:
        # Running builds are not waited for; the backend timeout bounds them.
        pool.shutdown(wait=False, cancel_futures=True)

    artifacts: list[BuildArtifact] = []
    failures: list[TargetFailure] = []
    for i, req in enumerate(requests):
        r = results[i]
        if isinstance(r, Ok):
            artifacts.append(r.value)
        else:
            failures.append(TargetFailure(target=req.target, message=r.error))

    return DispatchOutcome(
        status="failed" if failures else "succeeded",
        artifacts=tuple(artifacts),
        failures=tuple(failures),
    )


def _report(
    console: ConsoleProtocol, target: BuildTarget, result: Result[BuildArtifact, str]
) -> None:
    if isinstance(result, Ok):
        console.success(f"{target.id}: {result.value.name} ({result.value.size} bytes)")
    else:
        console.error(f"{target.id}: {result.error}")
