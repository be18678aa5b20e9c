"""Weighted heuristic quality scoring."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from signal_desk.data.models import Candle
from signal_desk.indicators.models import IndicatorSet
from signal_desk.scoring.base import QualityReport, ScoringStrategy
from signal_desk.scoring.volume import VolumeValidation
from signal_desk.signals.models import MarketCondition, Signal, SignalType


class HeuristicScoringStrategy(ScoringStrategy):
    """Blend pattern, indicator, trend, payoff and volume evidence into 0-100.

    Weights: pattern 30, indicator checks 25 (5 x 5), trend consistency 15,
    risk/reward 10, confidence 10, volume bonus -25..+10. A signal backed by
    unrealistic volume is capped at ``UNREALISTIC_CAP``.
    """

    name = "heuristic"

    PATTERN_WEIGHT = 30.0
    CHECK_WEIGHT = 5.0
    TREND_WEIGHT = 15.0
    RISK_REWARD_WEIGHT = 10.0
    CONFIDENCE_WEIGHT = 10.0
    TARGET_RISK_REWARD = 2.0
    UNREALISTIC_CAP = 45.0
    CONDITION_LOOKBACK = 5

    def score(
        self,
        signal: Signal,
        indicators: IndicatorSet,
        candles: Sequence[Candle],
        volume: VolumeValidation,
    ) -> QualityReport:
        changes = self._recent_changes(candles)
        volatility = float(changes.std(ddof=0)) if len(changes) else 0.0
        trend = float(changes.mean()) if len(changes) else 0.0
        momentum = abs(float(changes.iloc[-1])) if len(changes) else 0.0
        condition = self._condition(volatility, trend)

        quality = 0.0
        if signal.patterns:
            quality += self.PATTERN_WEIGHT * signal.diagnostics.pattern_reliability / 100
        close = candles[-1].close if candles else signal.entry
        quality += self.CHECK_WEIGHT * self._passed_checks(signal.type, close, indicators)
        quality += self.TREND_WEIGHT * self._trend_consistency(signal.type, changes)
        quality += self.RISK_REWARD_WEIGHT * min(signal.risk_reward / self.TARGET_RISK_REWARD, 1.0)
        quality += self.CONFIDENCE_WEIGHT * signal.confidence
        quality += volume.quality_bonus

        quality = min(max(quality, 0.0), 100.0)
        if not volume.is_realistic:
            quality = min(quality, self.UNREALISTIC_CAP)
        return QualityReport(
            quality_score=round(quality, 2),
            market_condition=condition,
            momentum=round(momentum, 4),
            volatility=round(volatility, 4),
            trend=round(trend, 4),
        )

    def _recent_changes(self, candles: Sequence[Candle]) -> pd.Series:
        closes = pd.Series([c.close for c in candles[-self.CONDITION_LOOKBACK :]], dtype=float)
        return (closes.pct_change() * 100).dropna()

    @staticmethod
    def _condition(volatility: float, trend: float) -> MarketCondition:
        if volatility > 1.5:
            return MarketCondition.HIGH_VOLATILITY
        if abs(trend) > 0.3:
            return MarketCondition.TRENDING
        if volatility > 0.5:
            return MarketCondition.MODERATE_VOLATILITY
        if volatility < 0.2:
            return MarketCondition.LOW_VOLATILITY
        return MarketCondition.RANGING

    @staticmethod
    def _passed_checks(side: SignalType, close: float, ind: IndicatorSet) -> int:
        if side == SignalType.NEUTRAL:
            return 0
        buy = side == SignalType.BUY
        checks = []
        if ind.rsi is not None:
            checks.append(ind.rsi < 70 if buy else ind.rsi > 30)
        if ind.macd_hist is not None:
            checks.append(ind.macd_hist > 0 if buy else ind.macd_hist < 0)
        if ind.bb_middle is not None:
            checks.append(close > ind.bb_middle if buy else close < ind.bb_middle)
        if ind.stoch_k is not None and ind.stoch_d is not None:
            checks.append(ind.stoch_k > ind.stoch_d if buy else ind.stoch_k < ind.stoch_d)
        if ind.cci is not None:
            checks.append(ind.cci < 100 if buy else ind.cci > -100)
        return sum(1 for passed in checks if passed)

    @staticmethod
    def _trend_consistency(side: SignalType, changes: pd.Series) -> float:
        if side == SignalType.NEUTRAL or not len(changes):
            return 0.0
        aligned = (changes > 0) if side == SignalType.BUY else (changes < 0)
        return float(aligned.sum()) / len(changes)
