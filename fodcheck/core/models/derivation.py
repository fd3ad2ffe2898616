"""
Derivation models — what discovery records and what verification yields.

Attributes and derivation paths are plain strings: an attribute is a
dotted attribute path (``python3Packages.requests``) and a derivation
is a store path (``/nix/store/<hash>-name.drv``). Two derivations are
the same derivation iff their path strings are equal.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DerivationRecord(BaseModel):
    """A derivation and the first attribute seen to reference it."""

    model_config = ConfigDict(frozen=True)

    drv: str
    attr: str


class FodResult(BaseModel):
    """Outcome of checking one fixed-output derivation."""

    model_config = ConfigDict(frozen=True)

    attr: str
    drv: str
    reproducible: bool

    @property
    def key(self) -> tuple[str, str]:
        return (self.attr, self.drv)

    def report_line(self) -> str:
        """The line printed for a non-reproducible FOD."""
        return f"FOD from {self.attr} at {self.drv} is not reproducible"
