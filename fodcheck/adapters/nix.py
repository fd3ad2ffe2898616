"""
Nix store client — StoreClient over the classic Nix CLIs.

    enumerate     nix-env --query --available --no-name --attr-path -f .
    instantiate   nix-instantiate . -A <attr> --add-root <root>
    requisites    nix-store --query --requisites <drv>
    realize       nix-store --realise <drv> --add-root <root>
    verify        nix-store --realise --check <drv> --no-gc-warning
    delete        nix-store --delete <path>
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fodcheck.adapters.base import StoreClient
from fodcheck.adapters.shell.command import NixCommandRunner
from fodcheck.core.errors import StoreCommandError
from fodcheck.core.models.action import CommandReceipt

logger = logging.getLogger(__name__)


class NixStoreClient(StoreClient):
    """Drive a local Nix installation through its command-line tools."""

    def __init__(self, runner: NixCommandRunner | None = None):
        self._runner = runner or NixCommandRunner()

    @property
    def name(self) -> str:
        return "nix"

    def _run(
        self, cmd: str, args: list[str], nix_path: list[Path] | None = None,
    ) -> CommandReceipt:
        receipt = self._runner.run(cmd, args, nix_path)
        if receipt.failed:
            raise StoreCommandError(cmd, receipt.error or "Nix process failed")
        return receipt

    def enumerate(self, tree: Path) -> list[str]:
        receipt = self._run(
            "nix-env",
            ["--query", "--available", "--no-name", "--attr-path", "-f", "."],
            [tree],
        )
        return [line.strip() for line in receipt.lines]

    def instantiate(self, tree: Path, attr: str, root: Path) -> str:
        receipt = self._run(
            "nix-instantiate",
            [".", "-A", attr, "--add-root", str(root)],
            [tree],
        )
        return _root_target(receipt, "nix-instantiate")

    def requisites(self, drv: str) -> list[str]:
        receipt = self._run("nix-store", ["--query", "--requisites", drv])
        return [line.strip() for line in receipt.lines]

    def realize(self, drv: str, root: Path) -> str:
        receipt = self._run("nix-store", ["--realise", drv, "--add-root", str(root)])
        return _root_target(receipt, "nix-store")

    def verify(self, drv: str) -> bool:
        receipt = self._runner.run(
            "nix-store", ["--realise", "--check", drv, "--no-gc-warning"],
        )
        if receipt.failed:
            logger.debug("Check of %s failed: %s", drv, receipt.error)
        return receipt.ok

    def delete(self, path: str) -> None:
        self._run("nix-store", ["--delete", path])

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def read_derivation(self, drv: str) -> str:
        return Path(drv).read_text(encoding="utf-8")


def _root_target(receipt: CommandReceipt, cmd: str) -> str:
    """Resolve the first printed path through the GC root it names.

    With ``--add-root`` Nix prints the root symlink rather than the
    store path; older versions print the store path itself.
    """
    lines = receipt.lines
    if not lines:
        raise StoreCommandError(cmd, "No store path in Nix output")
    printed = Path(lines[0].strip())
    if printed.is_symlink():
        try:
            return os.readlink(printed)
        except OSError as e:
            raise StoreCommandError(cmd, f"Finding GC root target: {e}") from e
    return str(printed)
