"""
Result aggregator — collects FOD verdicts from verification workers.

Keys are (attribute, derivation). The derivation store hands each
derivation to exactly one worker, so keys should never collide; if one
does, the first verdict is kept and the collision is logged.
"""

from __future__ import annotations

import logging
import threading

from fodcheck.core.models.derivation import FodResult

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Thread-safe (attribute, derivation) → reproducible map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[tuple[str, str], bool] = {}

    def add(self, result: FodResult) -> bool:
        """Record a verdict. Returns False if the key was already present."""
        with self._lock:
            if result.key in self._results:
                logger.error(
                    "Duplicate result for %s from %s, keeping the first",
                    result.drv, result.attr,
                )
                return False
            self._results[result.key] = result.reproducible
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def results(self) -> list[FodResult]:
        """Every result, sorted by attribute then derivation."""
        with self._lock:
            items = sorted(self._results.items())
        return [
            FodResult(attr=attr, drv=drv, reproducible=ok)
            for (attr, drv), ok in items
        ]

    def non_reproducible(self) -> list[FodResult]:
        """The results to report, in a stable order."""
        return [r for r in self.results() if not r.reproducible]
