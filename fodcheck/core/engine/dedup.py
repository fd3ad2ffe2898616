"""
Derivation store — the shared derivation → owning attribute map.

Many attributes share most of their build graph, so each derivation is
claimed by the first attribute that registers it and every later claim
is dropped. The claim is atomic: however many discovery workers race
for the same derivation, exactly one of them wins.

``_lock`` protects ``_owners``; nothing outside this class mutates it.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping

from fodcheck.core.models.derivation import DerivationRecord


class DerivationStore:
    """Concurrent first-writer-wins derivation ownership map."""

    def __init__(self, seed: Mapping[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._owners: dict[str, str] = dict(seed or {})

    def register_if_absent(self, drv: str, attr: str) -> bool:
        """Record ``attr`` as the owner of ``drv`` unless it already has one.

        Returns:
            True if this call claimed the derivation.
        """
        with self._lock:
            if drv in self._owners:
                return False
            self._owners[drv] = attr
            return True

    def register_all(self, drvs: Iterable[str], attr: str) -> int:
        """Claim every unowned derivation in ``drvs`` for ``attr``.

        Returns:
            The number of derivations newly claimed.
        """
        claimed = 0
        with self._lock:
            for drv in drvs:
                if drv not in self._owners:
                    self._owners[drv] = attr
                    claimed += 1
        return claimed

    def owner(self, drv: str) -> str | None:
        with self._lock:
            return self._owners.get(drv)

    def __contains__(self, drv: object) -> bool:
        with self._lock:
            return drv in self._owners

    def __len__(self) -> int:
        with self._lock:
            return len(self._owners)

    def snapshot(self) -> dict[str, str]:
        """A point-in-time copy of the mapping."""
        with self._lock:
            return dict(self._owners)

    def records(self) -> Iterator[DerivationRecord]:
        """Every record, ordered by derivation path."""
        for drv, attr in sorted(self.snapshot().items()):
            yield DerivationRecord(drv=drv, attr=attr)
