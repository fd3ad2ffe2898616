"""
Nix command runner — execute Nix CLIs in a sandboxed environment.

This is the lowest layer: it runs one command and captures its output
in a CommandReceipt. It never raises for a failing process; the store
client decides what a failure means.

Each invocation gets a scrubbed environment so that the user's own
Nix configuration cannot leak into evaluation:

    HOME=/homeless-shelter
    NIXPKGS_CONFIG=<tmp>/nixpkgs-config.nix   ({ allowAliases = false; })
    NIX_PATH=<search paths joined by ':'>
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from pathlib import Path

from fodcheck.core.models.action import CommandReceipt

logger = logging.getLogger(__name__)

HOMELESS_SHELTER = "/homeless-shelter"
NIXPKGS_CONFIG_NAME = "nixpkgs-config.nix"


def nixpkgs_config(allow_aliases: bool = False) -> str:
    """Render the nixpkgs config expression used for evaluation."""
    value = "true" if allow_aliases else "false"
    return f"{{ allowAliases = {value}; }}\n"


def build_environment(
    config_file: Path,
    nix_path: list[Path],
    search_path: str | None = None,
) -> dict[str, str]:
    """Build the environment for one Nix invocation.

    Args:
        config_file: Path to the nixpkgs config file.
        nix_path: NIX_PATH entries, in order.
        search_path: PATH to keep so the Nix binaries can be found.
    """
    env = {
        "HOME": HOMELESS_SHELTER,
        "NIXPKGS_CONFIG": str(config_file),
        "NIX_PATH": ":".join(str(p) for p in nix_path),
    }
    if search_path:
        env["PATH"] = search_path
    return env


class NixCommandRunner:
    """Run Nix commands and capture their output.

    Args:
        restrict_eval: Pass ``--option restrict-eval true`` to every command.
        allow_aliases: Value of ``allowAliases`` in the nixpkgs config.
    """

    def __init__(self, restrict_eval: bool = True, allow_aliases: bool = False):
        self._restrict_eval = restrict_eval
        self._allow_aliases = allow_aliases

    def command_args(self, args: list[str]) -> list[str]:
        """Arguments actually passed to the command."""
        if self._restrict_eval:
            return ["--option", "restrict-eval", "true", *args]
        return list(args)

    def run(
        self,
        cmd: str,
        args: list[str],
        nix_path: list[Path] | None = None,
    ) -> CommandReceipt:
        """Run ``cmd`` with ``args``.

        The working directory is the first NIX_PATH entry, if any.
        """
        nix_path = nix_path or []
        full_args = self.command_args(args)
        cwd = nix_path[0] if nix_path else None

        logger.debug("Executing: %s %s (cwd=%s)", cmd, " ".join(full_args), cwd)
        start = time.monotonic()

        with tempfile.TemporaryDirectory(prefix="fodcheck-config-") as config_dir:
            config_file = Path(config_dir) / NIXPKGS_CONFIG_NAME
            config_file.write_text(
                nixpkgs_config(self._allow_aliases), encoding="utf-8",
            )
            env = build_environment(
                config_file, nix_path, search_path=os.environ.get("PATH"),
            )

            try:
                result = subprocess.run(
                    [cmd, *full_args],
                    cwd=cwd,
                    env=env,
                    capture_output=True,
                    text=True,
                )
            except OSError as e:
                return CommandReceipt.failure(
                    command=cmd,
                    args=full_args,
                    error=f"Command execution error: {e}",
                )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return CommandReceipt.success(
                command=cmd,
                args=full_args,
                output=result.stdout,
                duration_ms=elapsed_ms,
                return_code=result.returncode,
                metadata={"stderr": stderr},
            )

        logger.debug("%s exited with %d: %s", cmd, result.returncode, stderr)
        return CommandReceipt.failure(
            command=cmd,
            args=full_args,
            error=_last_line(stderr) or f"Command exited with code {result.returncode}",
            output=result.stdout,
            duration_ms=elapsed_ms,
            return_code=result.returncode,
            metadata={"stderr": stderr},
        )


def _last_line(text: str) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""
