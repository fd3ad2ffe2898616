"""
Error hierarchy.

Fatal errors abort the whole run (exit code 1): configuration, cache
I/O, and attribute enumeration. Everything else is per-item: the
failing attribute or derivation is logged and skipped.
"""

from __future__ import annotations


class FodCheckError(Exception):
    """Base class for all fodcheck errors."""


class ConfigError(FodCheckError):
    """Raised when fodcheck configuration is invalid."""


class CacheError(FodCheckError):
    """Raised when the derivation cache cannot be read or written."""


class StoreCommandError(FodCheckError):
    """Raised when a Nix command fails."""

    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message


class EvaluationError(FodCheckError):
    """Raised when the package tree cannot be evaluated."""


class ClassificationError(FodCheckError):
    """Raised when a derivation description cannot be read or parsed."""
