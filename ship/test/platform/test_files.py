from __future__ import annotations

import hashlib
from pathlib import Path

from ship.platform.files import atomic_write_text, sha256_file


def test_atomic_write_creates_parents_and_leaves_no_temp(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "CHANGELOG.md"
    atomic_write_text(target, "# Changelog\n")
    atomic_write_text(target, "# Changelog\n\n## v1.0.0\n")

    assert target.read_text(encoding="utf-8") == "# Changelog\n\n## v1.0.0\n"
    assert [p.name for p in target.parent.iterdir()] == ["CHANGELOG.md"]


def test_sha256_file(tmp_path: Path) -> None:
    data = b"\x00" * (3 * 1024 * 1024 + 17)
    path = tmp_path / "blob.bin"
    path.write_bytes(data)
    assert sha256_file(path) == hashlib.sha256(data).hexdigest()
