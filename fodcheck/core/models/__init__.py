"""
Domain models — Pydantic types for fodcheck.

    from fodcheck.core.models import CommandReceipt, DerivationRecord, FodResult
"""

from fodcheck.core.models.action import CommandReceipt
from fodcheck.core.models.derivation import DerivationRecord, FodResult

__all__ = [
    "CommandReceipt",
    "DerivationRecord",
    "FodResult",
]
