"""
Engine executor — the two-phase audit loop.

Discovery runs one task per attribute; verification runs one task per
distinct derivation. The phases never overlap: verification only sees
derivations that survived deduplication across every attribute.

Flow:
    attributes → instantiate → claim → requisites → derivation store
    derivation store → classify → realise → check → release → aggregator

Per-item failures are logged and the item is skipped; they never stop
the phase.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeVar

from fodcheck.adapters.base import StoreClient
from fodcheck.core.engine.aggregator import ResultAggregator
from fodcheck.core.engine.classifier import DRV_SUFFIX, classify
from fodcheck.core.engine.dedup import DerivationStore
from fodcheck.core.engine.roots import RootKeeper, RootLayout
from fodcheck.core.errors import StoreCommandError
from fodcheck.core.models.derivation import DerivationRecord, FodResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

T = TypeVar("T")
R = TypeVar("R")

DiscoveryStatus = Literal["claimed", "duplicate", "failed", "requisites_failed"]
VerificationStatus = Literal["checked", "not_fod", "failed"]


def _no_progress(message: str) -> None:
    pass


def run_parallel(
    fn: Callable[[T], R],
    items: Iterable[T],
    jobs: int,
    name: str,
) -> Iterator[tuple[T, R]]:
    """Run ``fn`` over ``items`` on a thread pool, yielding as they finish."""
    with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix=name) as pool:
        futures = {pool.submit(fn, item): item for item in items}
        for future in as_completed(futures):
            yield futures[future], future.result()


# ── Discovery ───────────────────────────────────────────────────


@dataclass
class DiscoveryReport:
    """Outcome of the discovery phase."""

    attributes: int = 0
    claimed: int = 0
    duplicates: int = 0
    failed: list[str] = field(default_factory=list)
    requisite_failures: list[str] = field(default_factory=list)
    derivations: int = 0

    def to_dict(self) -> dict:
        return {
            "attributes": self.attributes,
            "claimed": self.claimed,
            "duplicates": self.duplicates,
            "failed": sorted(self.failed),
            "requisite_failures": sorted(self.requisite_failures),
            "derivations": self.derivations,
        }


def discover_attribute(
    attr: str,
    tree: Path,
    client: StoreClient,
    store: DerivationStore,
    layout: RootLayout,
    keeper: RootKeeper,
    on_progress: ProgressCallback = _no_progress,
) -> DiscoveryStatus:
    """Instantiate one attribute and record its build graph.

    The attribute's root is handed to ``keeper`` so its derivation
    stays protected until verification is over.
    """
    on_progress(f"Instantiating {attr}")

    with layout.attr_root(attr) as root:
        try:
            drv = client.instantiate(tree, attr, root.path)
        except StoreCommandError as e:
            logger.warning("Evaluation for %s failed", attr)
            logger.debug("Instantiating %s: %s", attr, e)
            return "failed"
        keeper.adopt(root)

    if not store.register_if_absent(drv, attr):
        on_progress(f"Ignoring duplicate derivation {drv}")
        return "duplicate"

    on_progress(f"Getting requisites for {drv}")
    try:
        reqs = client.requisites(drv)
    except StoreCommandError as e:
        logger.warning("Getting requisites for %s from %s failed", drv, attr)
        logger.debug("Requisites of %s: %s", drv, e)
        return "requisites_failed"

    claimed = store.register_all(reqs, attr)
    logger.debug("%s: %d requisites, %d newly claimed", attr, len(reqs), claimed)
    return "claimed"


def discover(
    attrs: list[str],
    tree: Path,
    client: StoreClient,
    store: DerivationStore,
    layout: RootLayout,
    keeper: RootKeeper,
    jobs: int = 1,
    on_progress: ProgressCallback = _no_progress,
) -> DiscoveryReport:
    """Run discovery for every attribute in parallel."""
    report = DiscoveryReport(attributes=len(attrs))

    def task(attr: str) -> DiscoveryStatus:
        return discover_attribute(
            attr, tree, client, store, layout, keeper, on_progress,
        )

    for attr, status in run_parallel(task, attrs, jobs, "discover"):
        if status == "claimed":
            report.claimed += 1
        elif status == "duplicate":
            report.duplicates += 1
        elif status == "failed":
            report.failed.append(attr)
        else:
            report.requisite_failures.append(attr)

    report.derivations = len(store)
    logger.info(
        "Discovery: %d attributes, %d failed, %d derivations",
        report.attributes, len(report.failed), report.derivations,
    )
    return report


# ── Verification ────────────────────────────────────────────────


@dataclass
class VerificationReport:
    """Outcome of the verification phase."""

    candidates: int = 0
    checked: int = 0
    not_fod: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "candidates": self.candidates,
            "checked": self.checked,
            "not_fod": self.not_fod,
            "failed": sorted(self.failed),
        }


def _delete_output(client: StoreClient, drv: str, output: str) -> None:
    try:
        client.delete(output)
    except StoreCommandError as e:
        logger.warning("Error removing root and output path from %s at %s", drv, output)
        logger.debug("Deleting %s: %s", output, e)


def check_derivation(
    record: DerivationRecord,
    tree: Path,
    client: StoreClient,
    layout: RootLayout,
    on_progress: ProgressCallback = _no_progress,
) -> tuple[VerificationStatus, FodResult | None]:
    """Realise a derivation twice and compare, if it is fixed-output.

    Every root created here is released before returning, and the
    realised output is deleted whatever the verdict.

    Returns:
        (status, verdict). The verdict is None unless status is "checked".
    """
    drv, attr = record.drv, record.attr
    if not drv.endswith(DRV_SUFFIX):
        return "not_fod", None

    with contextlib.ExitStack() as stack:
        if not client.exists(drv):
            # Instantiating the owner rewrites its whole .drv closure; the
            # retry root keeps that closure alive until this task returns.
            retry = stack.enter_context(layout.retry_root(drv))
            try:
                client.instantiate(tree, attr, retry.path)
            except StoreCommandError as e:
                logger.warning(
                    "Error re-instantiating derivation from %s at %s", attr, drv,
                )
                logger.debug("Re-instantiating %s: %s", attr, e)
                return "failed", None
            if not client.exists(drv):
                logger.warning(
                    "Re-instantiating %s did not recreate %s, skipping", attr, drv,
                )
                return "failed", None

        if not classify(client, drv):
            return "not_fod", None

        on_progress(f"Realising {drv}")

        drv_root = stack.enter_context(layout.drv_root(drv))
        try:
            output = client.realize(drv, drv_root.path)
        except StoreCommandError as e:
            logger.warning("Error realising derivation from %s at %s", attr, drv)
            logger.debug("Realising %s: %s", drv, e)
            return "failed", None

        try:
            reproducible = client.verify(drv)
        finally:
            drv_root.release()
            _delete_output(client, drv, output)

    return "checked", FodResult(attr=attr, drv=drv, reproducible=reproducible)


def verify_all(
    records: list[DerivationRecord],
    tree: Path,
    client: StoreClient,
    layout: RootLayout,
    aggregator: ResultAggregator,
    jobs: int = 1,
    on_progress: ProgressCallback = _no_progress,
) -> VerificationReport:
    """Check every recorded derivation in parallel."""
    report = VerificationReport(candidates=len(records))

    def task(record: DerivationRecord) -> VerificationStatus:
        status, result = check_derivation(record, tree, client, layout, on_progress)
        if result is not None:
            aggregator.add(result)
        return status

    for record, status in run_parallel(task, records, jobs, "verify"):
        if status == "checked":
            report.checked += 1
        elif status == "not_fod":
            report.not_fod += 1
        else:
            report.failed.append(record.drv)

    logger.info(
        "Verification: %d derivations, %d FODs checked, %d failed",
        report.candidates, report.checked, len(report.failed),
    )
    return report
