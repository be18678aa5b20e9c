"""Adaptive acceptance thresholds."""

from __future__ import annotations

from dataclasses import dataclass

from signal_desk.config.models import ThresholdConfig
from signal_desk.policy.activity import ActivitySnapshot
from signal_desk.scoring.volume import VolumeValidation
from signal_desk.signals.models import MarketCondition

# condition -> (confidence factor, quality offset)
CONDITION_ADJUSTMENTS = {
    MarketCondition.HIGH_VOLATILITY: (1.10, 5.0),
    MarketCondition.MODERATE_VOLATILITY: (1.05, 3.0),
    MarketCondition.TRENDING: (0.95, -3.0),
    MarketCondition.RANGING: (1.05, 3.0),
    MarketCondition.LOW_VOLATILITY: (1.0, 0.0),
}


@dataclass(frozen=True, slots=True)
class Thresholds:
    confidence: float  # 0-1
    quality: float  # 0-100


class ThresholdPolicy:
    """Minimum confidence/quality a signal must clear to be saved.

    A pure function of its arguments: recent system behaviour arrives as an
    ``ActivitySnapshot`` instead of being read from shared counters. Passing
    ``activity=None`` yields the baseline for the market state alone.
    """

    def __init__(self, config: ThresholdConfig | None = None) -> None:
        self._config = config or ThresholdConfig()

    def base(self, pair: str) -> Thresholds:
        cfg = self._config
        if pair in cfg.pair_confidence or pair in cfg.pair_quality:
            return Thresholds(
                confidence=cfg.pair_confidence.get(pair, cfg.default_confidence),
                quality=cfg.pair_quality.get(pair, cfg.default_quality),
            )
        if pair in cfg.major_pairs:
            return Thresholds(cfg.major_confidence, cfg.major_quality)
        return Thresholds(cfg.default_confidence, cfg.default_quality)

    def get_thresholds(
        self,
        pair: str,
        condition: MarketCondition,
        momentum: float,
        volume: VolumeValidation,
        activity: ActivitySnapshot | None = None,
    ) -> Thresholds:
        cfg = self._config
        base = self.base(pair)
        confidence, quality = base.confidence, base.quality

        if volume.is_high:
            confidence *= 0.95
            quality -= 5
        elif not volume.is_realistic:
            confidence *= 1.2
            quality += 10

        factor, offset = CONDITION_ADJUSTMENTS.get(condition, (1.0, 0.0))
        confidence *= factor
        quality += offset

        if momentum > cfg.momentum_spike_pct:
            confidence *= 1.1
            quality += 5

        if activity is not None:
            if activity.is_quiet:
                confidence *= cfg.quiet_confidence_factor
                quality -= cfg.quiet_quality_offset
            elif activity.accepted >= cfg.busy_accept_count:
                confidence *= 1.1
                quality += 5

        return Thresholds(
            confidence=round(min(max(confidence, cfg.min_confidence), cfg.max_confidence), 4),
            quality=round(min(max(quality, cfg.min_quality), cfg.max_quality), 2),
        )
