"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from fodcheck.adapters.mock import (
    MockStoreClient,
    fixed_output_derivation,
    input_addressed_derivation,
)
from fodcheck.core.engine.roots import RootLayout

PKG_A = "/nix/store/aaaa-pkgA-1.0.drv"
PKG_B = "/nix/store/bbbb-pkgB-2.0.drv"
SRC_D = "/nix/store/dddd-source.tar.gz.drv"
PATCH = "/nix/store/pppp-fix-build.patch"


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Return an (empty) package tree directory."""
    path = tmp_path / "nixpkgs"
    path.mkdir()
    return path


@pytest.fixture
def layout(tmp_path: Path) -> RootLayout:
    """Return a root layout in a temporary directory."""
    return RootLayout(tmp_path / "roots")


@pytest.fixture
def shared_client() -> MockStoreClient:
    """Two attributes that both depend on one fixed-output source."""
    return MockStoreClient(
        attrs={"pkgA": PKG_A, "pkgB": PKG_B},
        graph={
            PKG_A: [SRC_D, PATCH, PKG_A],
            PKG_B: [SRC_D, PKG_B],
        },
        derivations={
            PKG_A: input_addressed_derivation("aaaa-pkgA-1.0"),
            PKG_B: input_addressed_derivation("bbbb-pkgB-2.0"),
            SRC_D: fixed_output_derivation("dddd-source.tar.gz"),
        },
    )


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo any setup_logging() call made by a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
