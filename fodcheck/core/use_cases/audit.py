"""
Audit use case — check every fixed-output derivation in a package tree.

This is the top-level orchestrator: it loads the derivation cache,
enumerates attributes, runs discovery, persists the cache, runs
verification, and returns the verdicts. The full vertical slice from
a package tree path to a list of non-reproducible FODs.
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from fodcheck.adapters.base import StoreClient
from fodcheck.adapters.nix import NixStoreClient
from fodcheck.adapters.shell.command import NixCommandRunner
from fodcheck.core.config.loader import Settings
from fodcheck.core.engine.aggregator import ResultAggregator
from fodcheck.core.engine.dedup import DerivationStore
from fodcheck.core.engine.executor import (
    DiscoveryReport,
    ProgressCallback,
    VerificationReport,
    discover,
    verify_all,
)
from fodcheck.core.engine.roots import RootKeeper, RootLayout
from fodcheck.core.errors import (
    CacheError,
    EvaluationError,
    StoreCommandError,
)
from fodcheck.core.models.derivation import FodResult
from fodcheck.core.persistence.derivation_cache import load_cache, save_cache

logger = logging.getLogger(__name__)


@dataclass
class AuditResult:
    """Result of auditing a package tree."""

    tree: Path | None = None
    results: list[FodResult] = field(default_factory=list)
    discovery: DiscoveryReport | None = None
    verification: VerificationReport | None = None
    cache_entries: int = 0
    error: str | None = None

    @property
    def non_reproducible(self) -> list[FodResult]:
        return [r for r in self.results if not r.reproducible]

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["tree"] = str(self.tree)
        result["fods_checked"] = len(self.results)
        result["non_reproducible"] = [r.model_dump() for r in self.non_reproducible]
        if self.discovery:
            result["discovery"] = self.discovery.to_dict()
        if self.verification:
            result["verification"] = self.verification.to_dict()
        return result


def default_client(settings: Settings) -> StoreClient:
    """The Nix-backed client configured from ``settings``."""
    runner = NixCommandRunner(
        restrict_eval=settings.restrict_eval,
        allow_aliases=settings.allow_aliases,
    )
    return NixStoreClient(runner)


@contextlib.contextmanager
def _roots_dir(settings: Settings) -> Iterator[Path]:
    """The run's root directory: configured, or a fresh temporary one."""
    if settings.roots_dir is not None:
        settings.roots_dir.mkdir(parents=True, exist_ok=True)
        yield settings.roots_dir
        return
    with tempfile.TemporaryDirectory(prefix="fodcheck-roots-") as tmp:
        yield Path(tmp)


def list_attributes(client: StoreClient, tree: Path) -> list[str]:
    """Enumerate the attributes of ``tree``.

    Raises:
        EvaluationError: If the tree cannot be evaluated.
    """
    try:
        return client.enumerate(tree)
    except StoreCommandError as e:
        raise EvaluationError(f"Listing attributes in {tree}: {e.message}") from e


def run_audit(
    tree: Path,
    settings: Settings | None = None,
    client: StoreClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> AuditResult:
    """Audit every fixed-output derivation reachable from ``tree``.

    Args:
        tree: Path to the package tree (e.g. a nixpkgs checkout).
        settings: Run settings (default: Settings()).
        client: Store client (default: the Nix CLIs).
        on_progress: Receives one line per attribute and per realisation.

    Returns:
        AuditResult. ``error`` is set if a fatal error stopped the run.
    """
    settings = settings or Settings()
    client = client or default_client(settings)
    progress = on_progress or (lambda message: None)
    result = AuditResult(tree=tree)

    try:
        seed: dict[str, str] = {}
        if settings.cache_path is not None:
            seed = load_cache(settings.cache_path)

        progress(f"Generating attrs to check in {tree}")
        attrs = list_attributes(client, tree)

        store = DerivationStore(seed)
        aggregator = ResultAggregator()

        with _roots_dir(settings) as base, RootKeeper() as keeper:
            layout = RootLayout(base)
            result.discovery = discover(
                attrs, tree, client, store, layout, keeper,
                jobs=settings.jobs, on_progress=progress,
            )

            if settings.cache_path is not None:
                save_cache(store.snapshot(), settings.cache_path)
            result.cache_entries = len(store)

            result.verification = verify_all(
                list(store.records()), tree, client, layout, aggregator,
                jobs=settings.jobs, on_progress=progress,
            )

    except (CacheError, EvaluationError) as e:
        result.error = str(e)
        return result

    result.results = aggregator.results()
    logger.info(
        "Checked %d FODs, %d not reproducible",
        len(result.results), len(result.non_reproducible),
    )
    return result
