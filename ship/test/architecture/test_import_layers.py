from __future__ import annotations

from ._utils import iter_source_files, matches_prefix, parse_imports

# Package directory -> imports it must never make.
_FORBIDDEN: dict[str, tuple[str, ...]] = {
    "core": ("ship.platform", "ship.git", "ship.output", "ship.release", "ship.cli", "typer"),
    "platform": ("ship.git", "ship.output", "ship.release", "ship.cli", "typer"),
    "git": ("ship.output", "ship.release", "ship.cli", "typer", "rich"),
    "output": ("ship.cli", "typer"),
    "release": ("ship.cli", "typer", "rich"),
}


def test_layers_only_depend_downwards() -> None:
    offenders: list[str] = []
    for rel, path in iter_source_files():
        package = rel.split("/", 1)[0]
        forbidden = _FORBIDDEN.get(package, ())
        for item in parse_imports(path):
            if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                offenders.append(f"{rel}:{item.line}: imports '{item.module}'")

    assert not offenders, "Layering violations:\n" + "\n".join(offenders)


def test_output_only_uses_release_error_payload() -> None:
    offenders: list[str] = []
    for rel, path in iter_source_files():
        if not rel.startswith("output/"):
            continue
        for item in parse_imports(path):
            if matches_prefix(item.module, "ship.release") and item.module != "ship.release.errors":
                offenders.append(f"{rel}:{item.line}: imports '{item.module}'")

    assert not offenders, "\n".join(offenders)
