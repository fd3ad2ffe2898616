"""
CommandReceipt — the outcome of one external command.

The command runner never raises for a failing process: every outcome,
success or failure, is captured in a receipt. Callers that need
exceptions (the store client) translate failed receipts themselves.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class CommandReceipt(BaseModel):
    """Result of running one Nix command."""

    command: str
    args: list[str] = Field(default_factory=list)
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the command failed."""
        return self.status == "failed"

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines."""
        return [line for line in self.output.splitlines() if line.strip()]

    @classmethod
    def success(
        cls,
        command: str,
        output: str = "",
        **kwargs: Any,
    ) -> CommandReceipt:
        """Create a success receipt."""
        return cls(command=command, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        command: str,
        error: str,
        **kwargs: Any,
    ) -> CommandReceipt:
        """Create a failure receipt."""
        return cls(command=command, status="failed", error=error, **kwargs)
