from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from signal_desk.data.models import Candle

DAY_MS = 24 * 60 * 60 * 1000

# base asset -> (minimum, realistic) 24h quote volume
VOLUME_TIERS: Dict[str, Tuple[float, float]] = {
    "BTC": (500e6, 1e9),
    "ETH": (300e6, 600e6),
    "XRP": (100e6, 200e6),
    "DOGE": (200e6, 500e6),
    "ADA": (50e6, 100e6),
    "SOL": (30e6, 80e6),
    "DOT": (20e6, 50e6),
    "LINK": (15e6, 40e6),
    "AVAX": (10e6, 30e6),
}
DEFAULT_TIER: Tuple[float, float] = (5e6, 20e6)


@dataclass(frozen=True, slots=True)
class VolumeValidation:
    is_realistic: bool
    is_high: bool
    quality_bonus: float
    volume_score: float  # 0-100
    volume: float = 0.0


def base_asset(pair: str) -> str:
    return pair.replace("-", "/").split("/")[0].upper()


class VolumeValidator:
    """Sanity-check a reported 24h volume against the asset's tier."""

    HIGH_BONUS = 10.0
    REALISTIC_BONUS = 5.0
    UNREALISTIC_PENALTY = -25.0

    def __init__(self, tiers: Dict[str, Tuple[float, float]] | None = None) -> None:
        self._tiers = dict(tiers or VOLUME_TIERS)

    def expected_minimum(self, pair: str) -> float:
        return self._tier(pair)[0]

    def validate(self, pair: str, volume: float) -> VolumeValidation:
        minimum, realistic = self._tier(pair)
        is_realistic = volume >= minimum
        is_high = volume >= realistic
        if is_high:
            bonus = self.HIGH_BONUS
        elif is_realistic:
            bonus = self.REALISTIC_BONUS
        else:
            bonus = self.UNREALISTIC_PENALTY
        score = min(max(volume, 0.0) / realistic, 1.0) * 100 if realistic > 0 else 0.0
        return VolumeValidation(
            is_realistic=is_realistic,
            is_high=is_high,
            quality_bonus=bonus,
            volume_score=round(score, 2),
            volume=volume,
        )

    @staticmethod
    def estimate_from_candles(candles: Sequence[Candle]) -> float:
        """Quote volume of the candles opened within 24h of the latest one."""
        if not candles:
            return 0.0
        cutoff = candles[-1].timestamp - DAY_MS
        return sum(c.close * c.volume for c in candles if c.timestamp > cutoff)

    def _tier(self, pair: str) -> Tuple[float, float]:
        return self._tiers.get(base_asset(pair), DEFAULT_TIER)
