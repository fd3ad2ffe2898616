"""
StoreClient — the capability contract between the engine and Nix.

The engine only talks to the build engine through this interface,
never directly to subprocesses. Every call is synchronous and
blocking; parallelism comes from calling it from many worker threads,
so implementations must be safe to use concurrently.

Failing operations raise StoreCommandError, except ``verify``, whose
failure IS its answer (the second build did not match).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class StoreClient(ABC):
    """Abstract base class for store/evaluator bindings.

    To create a new client:
        1. Subclass StoreClient
        2. Implement every abstract method
        3. Pass it to ``run_audit(..., client=...)``
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The client identifier (e.g., 'nix', 'mock')."""

    @abstractmethod
    def enumerate(self, tree: Path) -> list[str]:
        """List every attribute path available in the package tree."""

    @abstractmethod
    def instantiate(self, tree: Path, attr: str, root: Path) -> str:
        """Instantiate ``attr`` and protect its derivation with ``root``.

        Returns:
            The derivation store path. After a successful call the root
            exists on disk and belongs to the caller.
        """

    @abstractmethod
    def requisites(self, drv: str) -> list[str]:
        """Return the transitive closure of ``drv``, including itself."""

    @abstractmethod
    def realize(self, drv: str, root: Path) -> str:
        """Build ``drv`` and protect its output with ``root``.

        Returns:
            The output store path.
        """

    @abstractmethod
    def verify(self, drv: str) -> bool:
        """Rebuild ``drv`` and compare against the existing output.

        Returns:
            True if the rebuild matched. Never raises for a mismatch.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a store path."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether a store object is present on disk."""

    @abstractmethod
    def read_derivation(self, drv: str) -> str:
        """Return the textual (ATerm) description of ``drv``."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
