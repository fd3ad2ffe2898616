"""Adapters — bindings to the Nix store and evaluator.

Public re-exports for convenient access.
"""

from fodcheck.adapters.base import StoreClient
from fodcheck.adapters.mock import MockStoreClient
from fodcheck.adapters.nix import NixStoreClient

__all__ = [
    "MockStoreClient",
    "NixStoreClient",
    "StoreClient",
]
