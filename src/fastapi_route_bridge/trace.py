"""LifecycleTrace and TraceEntry — debug execution recording."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class TraceEntry:
    """Single stage execution record."""

    stage_name: str
    kind: Literal["middleware", "handler", "stream"]
    duration_ms: float
    outcome: Literal["OK", "FAILED"]
    reason: str | None = None


@dataclass
class LifecycleTrace:
    """Structured record of a single request lifecycle."""

    entries: list[TraceEntry] = field(default_factory=list)
    total_duration_ms: float = 0.0
    outcome: Literal["OK", "FAILED", "CANCELLED"] = "OK"
    error: BaseException | None = None
