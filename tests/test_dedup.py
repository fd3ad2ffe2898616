"""
Tests for the derivation store — first-writer-wins deduplication.
"""

import threading

from fodcheck.core.engine.dedup import DerivationStore


class TestRegisterIfAbsent:
    def test_first_claim_wins(self):
        store = DerivationStore()
        assert store.register_if_absent("/nix/store/x.drv", "pkgA") is True
        assert store.register_if_absent("/nix/store/x.drv", "pkgB") is False
        assert store.owner("/nix/store/x.drv") == "pkgA"

    def test_seed_is_never_overwritten(self):
        store = DerivationStore({"/nix/store/x.drv": "cached"})
        assert store.register_if_absent("/nix/store/x.drv", "pkgA") is False
        assert store.owner("/nix/store/x.drv") == "cached"

    def test_contains_and_len(self):
        store = DerivationStore()
        store.register_if_absent("/nix/store/x.drv", "pkgA")
        assert "/nix/store/x.drv" in store
        assert "/nix/store/y.drv" not in store
        assert len(store) == 1

    def test_owner_missing(self):
        assert DerivationStore().owner("/nix/store/nope.drv") is None


class TestRegisterAll:
    def test_counts_only_new_claims(self):
        store = DerivationStore({"/nix/store/a.drv": "other"})
        claimed = store.register_all(
            ["/nix/store/a.drv", "/nix/store/b.drv", "/nix/store/c.drv"], "pkgA",
        )
        assert claimed == 2
        assert store.owner("/nix/store/a.drv") == "other"
        assert store.owner("/nix/store/b.drv") == "pkgA"

    def test_duplicates_within_one_batch(self):
        store = DerivationStore()
        assert store.register_all(["/nix/store/a.drv", "/nix/store/a.drv"], "pkgA") == 1


class TestConcurrency:
    def test_racing_claims_yield_one_owner_each(self):
        store = DerivationStore()
        drvs = [f"/nix/store/{i:04d}-dep.drv" for i in range(200)]
        wins: dict[str, int] = {}
        wins_lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker(n: int) -> None:
            attr = f"attr{n}"
            barrier.wait()
            won = sum(store.register_if_absent(drv, attr) for drv in drvs)
            with wins_lock:
                wins[attr] = won

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(wins.values()) == len(drvs)
        assert len(store) == len(drvs)
        snapshot = store.snapshot()
        for drv in drvs:
            assert snapshot[drv] in wins


class TestRecords:
    def test_records_sorted_by_path(self):
        store = DerivationStore({"/nix/store/b.drv": "y", "/nix/store/a.drv": "x"})
        records = list(store.records())
        assert [r.drv for r in records] == ["/nix/store/a.drv", "/nix/store/b.drv"]
        assert records[0].attr == "x"

    def test_snapshot_is_a_copy(self):
        store = DerivationStore()
        snap = store.snapshot()
        snap["/nix/store/x.drv"] = "pkgA"
        assert "/nix/store/x.drv" not in store
