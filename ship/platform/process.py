"""Subprocess execution with Result-based error handling.

All external commands (git, gh, build backends) go through ``run`` so failures
come back as ``ProcessError`` values instead of exceptions.

Usage:
    result = run(["git", "tag", "--list"], cwd=repo_root)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.detail()}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from ship.core.result import Err, Ok, Result

__all__ = ["NOT_RUN", "ProcessError", "run"]

# Return code reported when the process could not be started or was killed on timeout.
NOT_RUN = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that did not exit with status 0.

    ``stderr`` carries the timeout or OS error message when ``returncode`` is
    ``NOT_RUN``.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"

    def detail(self) -> str:
        """Best single-line explanation of the failure."""
        text = self.stderr.strip() or self.stdout.strip()
        if not text:
            return str(self)
        return text.splitlines()[-1]


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    input_text: str | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd`` and return its stdout.

    ``env=None`` inherits the current environment. ``input_text`` is written
    to stdin (used to hand release notes to ``gh``).
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, NOT_RUN, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(command, NOT_RUN, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)
