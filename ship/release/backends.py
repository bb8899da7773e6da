"""Build backends.

``CommandBackend`` runs the ``[build].command`` argv from release.toml once
per target, with placeholders filled from the build request:

    command = ["make", "dist", "VERSION={version}", "OS={os}", "ARCH={arch}", "OUT={output}"]

Target options are available by name too (``{description}`` for an option
called ``description``), and every option is exported to the process
environment as ``SHIP_OPT_<NAME>``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.platform.process import run as run_process
from ship.release.dispatcher import BuildRequest


@dataclass(frozen=True, slots=True)
class CommandBackend:
    command: tuple[str, ...]
    cwd: Path
    timeout: float | None = None

    def render(self, request: BuildRequest) -> list[str]:
        values = {
            **request.options,
            "version": request.version,
            "os": request.target.os,
            "arch": request.target.arch,
            "ext": request.target.ext,
            "output": str(request.output),
        }
        argv: list[str] = []
        for part in self.command:
            for key, value in values.items():
                part = part.replace("{" + key + "}", value)
            argv.append(part)
        return argv

    def environment(self, request: BuildRequest) -> dict[str, str]:
        env = dict(os.environ)
        env["SHIP_VERSION"] = request.version
        env["SHIP_TARGET_OS"] = request.target.os
        env["SHIP_TARGET_ARCH"] = request.target.arch
        env["SHIP_OUTPUT"] = str(request.output)
        for key, value in request.options.items():
            env[f"SHIP_OPT_{key.upper().replace('-', '_')}"] = value
        return env

    def build(self, request: BuildRequest) -> Result[Path, str]:
        if not self.command:
            return Err("no [build].command configured")

        result = run_process(
            self.render(request),
            cwd=self.cwd,
            env=self.environment(request),
            timeout=self.timeout,
        )
        if isinstance(result, Err):
            return Err(result.error.detail())
        if not request.output.is_file():
            return Err(f"build command did not produce {request.output.name}")
        return Ok(request.output)
