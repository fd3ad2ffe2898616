"""
Tests for persistence — the derivation cache file.
"""

import json
from pathlib import Path

import pytest

from fodcheck.core.errors import CacheError
from fodcheck.core.persistence.derivation_cache import load_cache, save_cache


class TestDerivationCache:
    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / "cache.json"
        drvs = {"/nix/store/b.drv": "pkgB", "/nix/store/a.drv": "pkgA"}
        save_cache(drvs, path)
        assert load_cache(path) == drvs

    def test_load_missing_returns_empty(self, tmp_path: Path):
        assert load_cache(tmp_path / "nonexistent.json") == {}

    def test_load_corrupt_is_fatal(self, tmp_path: Path):
        path = tmp_path / "corrupt.json"
        path.write_text("not json at all {{{")
        with pytest.raises(CacheError, match="Deserializing"):
            load_cache(path)

    def test_load_wrong_shape_is_fatal(self, tmp_path: Path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps(["/nix/store/a.drv"]))
        with pytest.raises(CacheError):
            load_cache(path)

    def test_load_non_string_owner_is_fatal(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"/nix/store/a.drv": 3}))
        with pytest.raises(CacheError):
            load_cache(path)

    def test_load_directory_is_fatal(self, tmp_path: Path):
        with pytest.raises(CacheError, match="Reading"):
            load_cache(tmp_path)

    def test_save_creates_directories(self, tmp_path: Path):
        path = tmp_path / "deep" / "nested" / "cache.json"
        save_cache({"/nix/store/a.drv": "pkgA"}, path)
        assert path.is_file()

    def test_save_is_sorted_json(self, tmp_path: Path):
        path = tmp_path / "cache.json"
        save_cache({"/nix/store/b.drv": "pkgB", "/nix/store/a.drv": "pkgA"}, path)
        data = json.loads(path.read_text())
        assert list(data) == ["/nix/store/a.drv", "/nix/store/b.drv"]

    def test_save_leaves_no_temp_files(self, tmp_path: Path):
        save_cache({"/nix/store/a.drv": "pkgA"}, tmp_path / "cache.json")
        assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]

    def test_save_failure_is_fatal(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(CacheError, match="Writing"):
            save_cache({}, blocker / "cache.json")
