"""
Mock store client — in-memory test double for StoreClient.

Simulates a package tree (attribute → derivation), a build graph
(derivation → requisites) and the derivation files themselves, without
touching Nix. Roots are written as plain files so that the engine's
root lifecycle can be observed on disk. Every call is recorded.
"""

from __future__ import annotations

import threading
from pathlib import Path

from fodcheck.adapters.base import StoreClient
from fodcheck.core.errors import StoreCommandError


def aterm_derivation(outputs: list[tuple[str, str, str, str]]) -> str:
    """Render a minimal ATerm derivation with the given output tuples."""
    rendered = ",".join(
        "(" + ",".join(f'"{field}"' for field in output) + ")" for output in outputs
    )
    return f'Derive([{rendered}],[],[],"x86_64-linux","/bin/sh",[],[])'


def fixed_output_derivation(name: str, digest: str = "0" * 52) -> str:
    """ATerm text of a single-output fixed-output derivation."""
    return aterm_derivation([("out", f"/nix/store/{name}", "sha256", digest)])


def input_addressed_derivation(name: str) -> str:
    """ATerm text of an ordinary derivation with no declared hash."""
    return aterm_derivation([("out", f"/nix/store/{name}", "", "")])


class MockStoreClient(StoreClient):
    """Universal mock store for testing.

    Args:
        attrs: Attribute path → derivation path.
        graph: Derivation path → requisites (the derivation itself is
            added if missing).
        derivations: Derivation path → ATerm text. Derivations without
            text are treated as unreadable.
        non_reproducible: Derivations whose check build does not match.
    """

    def __init__(
        self,
        attrs: dict[str, str] | None = None,
        graph: dict[str, list[str]] | None = None,
        derivations: dict[str, str] | None = None,
        non_reproducible: set[str] | None = None,
    ):
        self._attrs = dict(attrs or {})
        self._graph = dict(graph or {})
        self._derivations = dict(derivations or {})
        self._non_reproducible = set(non_reproducible or ())
        self._present: set[str] = set(self._derivations)
        self._realized: set[str] = set()
        self._failures: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self._call_log: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "mock"

    # ── Configuration ───────────────────────────────────────────

    def set_failure(self, operation: str, key: str = "*") -> None:
        """Make ``operation`` fail for ``key`` (an attribute or path, or '*')."""
        self._failures.setdefault(operation, set()).add(key)

    def set_non_reproducible(self, drv: str) -> None:
        """Make the check build of ``drv`` differ from the first build."""
        self._non_reproducible.add(drv)

    def remove_from_store(self, path: str) -> None:
        """Simulate garbage collection of a store object."""
        with self._lock:
            self._present.discard(path)

    # ── Introspection ───────────────────────────────────────────

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """All (operation, argument) pairs this mock has received."""
        with self._lock:
            return list(self._call_log)

    def calls(self, operation: str) -> list[str]:
        """Arguments of every call to ``operation``, in call order."""
        return [arg for op, arg in self.call_log if op == operation]

    @property
    def realized(self) -> set[str]:
        """Output paths currently present in the simulated store."""
        with self._lock:
            return set(self._realized)

    def reset(self) -> None:
        """Clear the call log and configured failures."""
        with self._lock:
            self._call_log.clear()
            self._failures.clear()

    # ── StoreClient ─────────────────────────────────────────────

    def _record(self, operation: str, key: str) -> None:
        with self._lock:
            self._call_log.append((operation, key))
        failing = self._failures.get(operation, set())
        if key in failing or "*" in failing:
            raise StoreCommandError(operation, f"mock failure for {key}")

    def enumerate(self, tree: Path) -> list[str]:
        self._record("enumerate", str(tree))
        return list(self._attrs)

    def instantiate(self, tree: Path, attr: str, root: Path) -> str:
        """Write the root and bring the attribute's whole .drv closure back."""
        self._record("instantiate", attr)
        drv = self._attrs.get(attr)
        if drv is None:
            raise StoreCommandError("instantiate", f"attribute '{attr}' missing")
        root.parent.mkdir(parents=True, exist_ok=True)
        root.write_text(drv, encoding="utf-8")
        with self._lock:
            self._present.add(drv)
            self._present.update(self._graph.get(drv, []))
        return drv

    def requisites(self, drv: str) -> list[str]:
        self._record("requisites", drv)
        reqs = list(self._graph.get(drv, []))
        if drv not in reqs:
            reqs.append(drv)
        return reqs

    def realize(self, drv: str, root: Path) -> str:
        self._record("realize", drv)
        output = output_path(drv)
        root.parent.mkdir(parents=True, exist_ok=True)
        root.write_text(output, encoding="utf-8")
        with self._lock:
            self._realized.add(output)
        return output

    def verify(self, drv: str) -> bool:
        self._record("verify", drv)
        return drv not in self._non_reproducible

    def delete(self, path: str) -> None:
        self._record("delete", path)
        with self._lock:
            self._realized.discard(path)

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._present

    def read_derivation(self, drv: str) -> str:
        self._record("read_derivation", drv)
        try:
            return self._derivations[drv]
        except KeyError:
            raise FileNotFoundError(drv) from None


def output_path(drv: str) -> str:
    """The simulated output path of a derivation."""
    return drv[: -len(".drv")] if drv.endswith(".drv") else f"{drv}-out"
