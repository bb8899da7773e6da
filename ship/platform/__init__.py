"""Process and filesystem helpers."""

from .files import atomic_write_text, sha256_file
from .process import NOT_RUN, ProcessError, run

__all__ = [
    "NOT_RUN",
    "ProcessError",
    "atomic_write_text",
    "run",
    "sha256_file",
]
