"""Run-level mutual exclusion keyed on (repository, channel).

Resolving "the last released version" and creating the next tag is a
check-then-act sequence, so two commit-mode runs for the same channel must
not overlap.
"""

from __future__ import annotations

import os
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from ship.core.result import Err, Ok, Result
from ship.release.errors import ReleaseError

LOCK_DIR = ".ship/locks"


class RunLock(Protocol):
    def acquire(self, repository: str, channel: str) -> Result[None, ReleaseError]: ...

    def release(self, repository: str, channel: str) -> None: ...


def _locked(repository: str, channel: str, detail: str | None = None) -> ReleaseError:
    return ReleaseError(
        kind="run_locked",
        message=f"another release run holds the lock for {repository} ({channel})",
        hint=detail or "Wait for the other run to finish.",
    )


class MemoryRunLock:
    """In-process lock; enough when every run shares one interpreter."""

    def __init__(self) -> None:
        self._held: set[tuple[str, str]] = set()
        self._mutex = threading.Lock()

    def acquire(self, repository: str, channel: str) -> Result[None, ReleaseError]:
        key = (repository, channel)
        with self._mutex:
            if key in self._held:
                return Err(_locked(repository, channel))
            self._held.add(key)
        return Ok(None)

    def release(self, repository: str, channel: str) -> None:
        with self._mutex:
            self._held.discard((repository, channel))


def _lock_name(repository: str, channel: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", repository).strip("_") or "repo"
    return f"{safe}.{channel}.lock"


class FileRunLock:
    """Cross-process lock file created with O_EXCL under ``<root>/.ship/locks``.

    A crashed run leaves its lock file behind; the error hint names the file
    to delete.
    """

    def __init__(self, root: Path) -> None:
        self.dir = root / LOCK_DIR

    def path_for(self, repository: str, channel: str) -> Path:
        return self.dir / _lock_name(repository, channel)

    def acquire(self, repository: str, channel: str) -> Result[None, ReleaseError]:
        path = self.path_for(repository, channel)
        try:
            self.dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return Err(_locked(repository, channel, f"If no run is active, delete {path}"))
        except OSError as e:
            return Err(
                ReleaseError(kind="run_locked", message=f"cannot create lock file: {e}")
            )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{os.getpid()}\n")
        return Ok(None)

    def release(self, repository: str, channel: str) -> None:
        self.path_for(repository, channel).unlink(missing_ok=True)


@contextmanager
def hold(lock: RunLock, repository: str, channel: str) -> Iterator[Result[None, ReleaseError]]:
    """Acquire for the duration of the block; yields the acquire result."""
    acquired = lock.acquire(repository, channel)
    try:
        yield acquired
    finally:
        if isinstance(acquired, Ok):
            lock.release(repository, channel)
