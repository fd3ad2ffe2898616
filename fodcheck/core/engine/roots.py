"""
Protection roots — scoped GC roots for derivations and outputs.

A protection root is a symlink registered with Nix as an indirect GC
root: while it exists, the store object it points at cannot be
collected. Roots are handles that release themselves when their
``with`` block exits, on every exit path.

Layout under the run's root directory::

    attrs/<attribute>      derivation of an instantiated attribute
    drvs/<drv basename>    realized output of a checked derivation
    retries/<drv basename> derivation re-instantiated during verification

Attribute roots outlive the discovery task that creates them: the
task hands them to the run's RootKeeper, which releases them once
verification is over.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class ProtectionRoot:
    """A GC root file, released (unlinked) when its scope exits."""

    def __init__(self, path: Path, label: str = "") -> None:
        self.path = path
        self.label = label or path.name
        self._active = True

    @property
    def active(self) -> bool:
        """Whether this handle is still responsible for the root."""
        return self._active

    def transfer(self) -> ProtectionRoot:
        """Hand the root to a new owner; this handle no longer releases it."""
        self._active = False
        return ProtectionRoot(self.path, self.label)

    def release(self) -> bool:
        """Remove the root file. Failures are logged, never raised.

        Returns:
            True if the root is gone.
        """
        if not self._active:
            return True
        self._active = False
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to release root for %s, ignoring", self.label)
            logger.debug("Unlinking %s: %s", self.path, e)
            return False
        return True

    def __enter__(self) -> ProtectionRoot:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<ProtectionRoot {self.path} active={self._active}>"


class RootLayout:
    """Where each kind of root lives under the run's root directory."""

    def __init__(self, base: Path) -> None:
        self.base = base

    def attr_root(self, attr: str) -> ProtectionRoot:
        return ProtectionRoot(self.base / "attrs" / attr, label=attr)

    def drv_root(self, drv: str) -> ProtectionRoot:
        return ProtectionRoot(self.base / "drvs" / PurePosixPath(drv).name, label=drv)

    def retry_root(self, drv: str) -> ProtectionRoot:
        return ProtectionRoot(self.base / "retries" / PurePosixPath(drv).name, label=drv)

    def leftovers(self) -> list[Path]:
        """Root files still present on disk."""
        if not self.base.is_dir():
            return []
        return sorted(p for p in self.base.rglob("*") if p.is_file() or p.is_symlink())


class RootKeeper:
    """Run-scoped owner of roots handed over by worker tasks.

    ``_lock`` serializes adoption; ``close()`` releases everything
    adopted so far, most recent first.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stack = contextlib.ExitStack()
        self._count = 0

    def adopt(self, root: ProtectionRoot) -> None:
        """Take ownership of ``root`` until the keeper closes."""
        with self._lock:
            self._stack.enter_context(root.transfer())
            self._count += 1

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def close(self) -> None:
        with self._lock:
            self._stack.close()
            self._count = 0

    def __enter__(self) -> RootKeeper:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
