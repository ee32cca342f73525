"""
Support and resistance detection.

Candidate levels come from four sources (swing points, classic pivots,
high-volume reversal bars and round numbers). Nearby candidates are merged
and only levels that reach the maximum strength are used. When no strong
level exists on a side, a fixed band around the recent range is used.
"""

from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

import numpy as np

from equity_scorer.src.models.market_data import PriceSeries

LevelType = Literal["support", "resistance"]

MAX_STRENGTH = 3


@dataclass
class PriceLevel:
    price: float
    strength: int
    level_type: LevelType
    touches: int = 1


class SupportResistanceAnalyzer:
    """Finds the nearest strong support below and resistance above the last close."""

    SWING_LOOKBACK = 10
    MERGE_TOLERANCE = 0.005  # fraction of the series' price range
    HIGH_VOLUME_MULTIPLIER = 2.0
    FALLBACK_WINDOW = 20
    FALLBACK_SUPPORT_FACTOR = 0.95
    FALLBACK_RESISTANCE_FACTOR = 1.05

    @classmethod
    def find_levels(cls, series: PriceSeries) -> Tuple[float, float]:
        """
        Returns:
            (support, resistance) for the latest close. Both are always
            defined for a non-empty series.
        """
        if len(series) == 0:
            return 0.0, 0.0

        highs = np.asarray(series.highs, dtype=float)
        lows = np.asarray(series.lows, dtype=float)
        closes = np.asarray(series.closes, dtype=float)
        volumes = np.asarray(series.volumes, dtype=float)
        price = float(closes[-1])

        candidates: List[PriceLevel] = []
        candidates.extend(cls._swing_levels(highs, lows))
        candidates.extend(cls._pivot_levels(highs[-1], lows[-1], closes[-1]))
        candidates.extend(cls._volume_levels(highs, lows, closes, volumes))
        candidates.extend(cls._psychological_levels(price))

        tolerance = float(highs.max() - lows.min()) * cls.MERGE_TOLERANCE
        merged = cls.merge_levels(candidates, tolerance)

        support = cls._nearest(merged, price, "support")
        resistance = cls._nearest(merged, price, "resistance")

        window = cls.FALLBACK_WINDOW
        if support is None:
            support = float(lows[-window:].min()) * cls.FALLBACK_SUPPORT_FACTOR
        if resistance is None:
            resistance = float(highs[-window:].max()) * cls.FALLBACK_RESISTANCE_FACTOR
        return support, resistance

    @classmethod
    def _swing_levels(cls, highs: np.ndarray, lows: np.ndarray) -> List[PriceLevel]:
        levels: List[PriceLevel] = []
        lookback = cls.SWING_LOOKBACK
        for i in range(lookback, len(highs) - lookback):
            window = slice(i - lookback, i + lookback + 1)
            if highs[i] == highs[window].max():
                levels.append(PriceLevel(float(highs[i]), 2, "resistance"))
            if lows[i] == lows[window].min():
                levels.append(PriceLevel(float(lows[i]), 2, "support"))
        return levels

    @staticmethod
    def _pivot_levels(high: float, low: float, close: float) -> List[PriceLevel]:
        pivot = (high + low + close) / 3
        spread = high - low
        return [
            PriceLevel(2 * pivot - low, 3, "resistance"),
            PriceLevel(2 * pivot - high, 3, "support"),
            PriceLevel(pivot + spread, 2, "resistance"),
            PriceLevel(pivot - spread, 2, "support"),
            PriceLevel(high + 2 * (pivot - low), 1, "resistance"),
            PriceLevel(low - 2 * (high - pivot), 1, "support"),
        ]

    @classmethod
    def _volume_levels(
        cls,
        highs: np.ndarray,
        lows: np.ndarray,
        closes: np.ndarray,
        volumes: np.ndarray,
    ) -> List[PriceLevel]:
        levels: List[PriceLevel] = []
        if len(volumes) < 3:
            return levels
        average_volume = float(volumes.mean())
        if average_volume <= 0:
            return levels

        # A heavy-volume bar followed by a reversal marks a level
        for i in range(1, len(volumes) - 1):
            if volumes[i] <= average_volume * cls.HIGH_VOLUME_MULTIPLIER:
                continue
            if closes[i] < closes[i - 1] and closes[i + 1] > closes[i]:
                levels.append(PriceLevel(float(lows[i]), 2, "support"))
            elif closes[i] > closes[i - 1] and closes[i + 1] < closes[i]:
                levels.append(PriceLevel(float(highs[i]), 2, "resistance"))
        return levels

    @staticmethod
    def round_number_interval(price: float) -> float:
        if price < 20:
            return 1.0
        if price < 100:
            return 5.0
        if price < 500:
            return 10.0
        return 50.0

    @classmethod
    def _psychological_levels(cls, price: float) -> List[PriceLevel]:
        if price <= 0:
            return []
        interval = cls.round_number_interval(price)
        below = np.floor(price / interval) * interval
        above = below + interval
        levels = [PriceLevel(float(above), 1, "resistance")]
        if below > 0:
            levels.append(PriceLevel(float(below), 1, "support"))
        return levels

    @staticmethod
    def merge_levels(levels: List[PriceLevel], tolerance: float) -> List[PriceLevel]:
        """
        Merge same-type levels lying within ``tolerance`` of a cluster's first level.

        The merged price is the cluster mean; the merged strength is
        min(3, strongest member + members // 2).
        """
        merged: List[PriceLevel] = []
        for level_type in ("support", "resistance"):
            ordered = sorted(
                (lvl for lvl in levels if lvl.level_type == level_type),
                key=lambda lvl: lvl.price,
            )
            cluster: List[PriceLevel] = []
            for level in ordered:
                if cluster and level.price - cluster[0].price > tolerance:
                    merged.append(_collapse(cluster))
                    cluster = []
                cluster.append(level)
            if cluster:
                merged.append(_collapse(cluster))
        return merged

    @staticmethod
    def _nearest(levels: List[PriceLevel], price: float, level_type: LevelType) -> Optional[float]:
        strong = [
            lvl.price
            for lvl in levels
            if lvl.level_type == level_type and lvl.strength >= MAX_STRENGTH
        ]
        if level_type == "support":
            below = [p for p in strong if p < price]
            return max(below) if below else None
        above = [p for p in strong if p > price]
        return min(above) if above else None


def _collapse(cluster: List[PriceLevel]) -> PriceLevel:
    strength = min(MAX_STRENGTH, max(lvl.strength for lvl in cluster) + len(cluster) // 2)
    return PriceLevel(
        price=float(np.mean([lvl.price for lvl in cluster])),
        strength=strength,
        level_type=cluster[0].level_type,
        touches=len(cluster),
    )
