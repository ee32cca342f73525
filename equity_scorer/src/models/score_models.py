"""
Score, moat rating and crawl bookkeeping models.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from equity_scorer.src.models.technical_indicators import TechnicalIndicators


class Recommendation(str, Enum):
    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


class MoatRating(BaseModel):
    """
    Externally produced competitive-advantage rating.

    Only ``overall_score`` feeds the composite score; the rest is carried
    for display.
    """

    symbol: str
    overall_score: float = Field(ge=0, le=100)
    strength: Optional[Literal["Strong", "Moderate", "Weak"]] = None
    summary: Optional[str] = None


class Score(BaseModel):
    """Composite quality + timing score for one symbol at one point in time."""

    symbol: str
    total: int = Field(ge=0, le=100)
    business_quality: int = Field(ge=0, le=60)
    timing: int = Field(ge=0, le=40)

    financial_health: int = Field(ge=0, le=25)
    moat: int = Field(ge=0, le=20)
    growth: int = Field(ge=0, le=15)
    valuation: int = Field(ge=0, le=20)
    technical: int = Field(ge=0, le=20)

    recommendation: Recommendation
    explanation: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)

    technical_indicators: TechnicalIndicators = Field(default_factory=TechnicalIndicators)
    moat_source: Literal["rating", "estimate"] = "estimate"
    data_source: Optional[str] = None
    fundamentals_estimated: bool = False
    price: Optional[float] = None
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        return self.model_dump_json()


@dataclass
class CalculationProgress:
    """
    Run-scoped crawl progress.

    Mutated only through the async methods, which serialize on ``_lock``.
    """

    total: int = 0
    completed: int = 0
    failed: int = 0
    current_symbol: Optional[str] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    errors: List[Tuple[str, str]] = field(default_factory=list)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def mark_started(self, symbol: str) -> None:
        async with self._lock:
            self.current_symbol = symbol

    async def mark_completed(self, symbol: str) -> None:
        async with self._lock:
            self.completed += 1
            self.current_symbol = symbol

    async def mark_failed(self, symbol: str, error: str) -> None:
        async with self._lock:
            self.failed += 1
            self.errors.append((symbol, error))

    def snapshot(self) -> Dict[str, Any]:
        """Read-only copy for status reporting."""
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "current_symbol": self.current_symbol,
            "start_time": self.start_time.isoformat(),
            "errors": list(self.errors),
        }


@dataclass
class RunSummary:
    """Outcome of one crawl run."""

    total: int
    completed: int
    failed: int
    duration_seconds: float
    errors: List[Tuple[str, str]] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    skipped: bool = False
    timed_out: bool = False

    @property
    def success_rate(self) -> float:
        """Percentage of attempted symbols that were scored."""
        if self.total == 0:
            return 0.0
        return self.completed / self.total * 100

    @property
    def failed_symbols(self) -> List[str]:
        return [symbol for symbol, _ in self.errors]

    @classmethod
    def empty(cls) -> "RunSummary":
        """Summary of a run that found nothing to do."""
        return cls(total=0, completed=0, failed=0, duration_seconds=0.0, skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "duration_seconds": round(self.duration_seconds, 2),
            "success_rate": round(self.success_rate, 2),
            "errors": [{"symbol": s, "error": e} for s, e in self.errors],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "skipped": self.skipped,
            "timed_out": self.timed_out,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __str__(self) -> str:
        return (
            f"RunSummary(total={self.total}, completed={self.completed}, "
            f"failed={self.failed}, success_rate={self.success_rate:.1f}%, "
            f"duration={self.duration_seconds:.1f}s)"
        )
