from __future__ import annotations

import logging
from typing import List, Sequence

from signal_desk.config.models import PatternConfig
from signal_desk.data.models import Candle
from signal_desk.patterns.catalog import CATALOG, PatternRule
from signal_desk.signals.models import PatternCandidate, PatternScan, SignalType
from signal_desk.signals.sizing import PositionSizer

logger = logging.getLogger(__name__)

MIN_PATTERN_CANDLES = 3
VOLUME_CONFIRMED_BONUS = 5.0
VOLUME_MISSING_PENALTY = 10.0
LEVEL_CONTEXT_BONUS = 5.0


class PatternDetector:
    """Scan the tail of a candle window for known candlestick formations."""

    def __init__(self, config: PatternConfig | None = None, sizer: PositionSizer | None = None) -> None:
        self._config = config or PatternConfig()
        self._sizer = sizer or PositionSizer()

    def detect(self, candles: Sequence[Candle]) -> PatternScan:
        volatility = self.volatility(candles)
        if len(candles) < MIN_PATTERN_CANDLES:
            return PatternScan(best_pattern=None, volatility=volatility)

        supports, resistances = self.pivot_levels(candles)
        close = candles[-1].close
        near_support = any(self._near(close, level) for level in supports)
        near_resistance = any(self._near(close, level) for level in resistances)

        matches: List[PatternCandidate] = []
        for rule in CATALOG:
            if len(candles) < rule.span:
                continue
            if rule.context == "support" and not near_support:
                continue
            if rule.context == "resistance" and not near_resistance:
                continue
            if not rule.matches(candles):
                continue
            reliability = self._reliability(rule, candles)
            if reliability < self._config.min_reliability:
                continue
            matches.append(self._candidate(rule, candles, reliability))

        best = max(matches, key=lambda m: (m.reliability, m.risk_reward), default=None)
        if best is not None:
            logger.debug("Best pattern %s (%.0f)", best.pattern_name, best.reliability)
        return PatternScan(best_pattern=best, volatility=volatility, matches=tuple(matches))

    def volatility(self, candles: Sequence[Candle]) -> float:
        recent = candles[-self._config.volatility_lookback :]
        if not recent or recent[-1].close <= 0:
            return 0.0
        span = max(c.high for c in recent) - min(c.low for c in recent)
        return span / recent[-1].close * 100

    def pivot_levels(self, candles: Sequence[Candle]) -> tuple[list[float], list[float]]:
        window = candles[-self._config.pivot_lookback :]
        supports: list[float] = []
        resistances: list[float] = []
        if len(window) < 20:
            return supports, resistances
        for i in range(2, len(window) - 2):
            neighbours = (window[i - 2], window[i - 1], window[i + 1], window[i + 2])
            if all(window[i].low < n.low for n in neighbours):
                supports.append(window[i].low)
            if all(window[i].high > n.high for n in neighbours):
                resistances.append(window[i].high)
        return supports[-3:], resistances[-3:]

    def volume_confirmed(self, candles: Sequence[Candle], ratio: float) -> bool:
        recent = candles[-self._config.volume_lookback :]
        average = sum(c.volume for c in recent) / len(recent)
        return average > 0 and candles[-1].volume > average * ratio

    def _near(self, price: float, level: float) -> bool:
        return level > 0 and abs(price - level) / level < self._config.level_tolerance_pct

    def _reliability(self, rule: PatternRule, candles: Sequence[Candle]) -> float:
        ratio = rule.volume_ratio or self._config.volume_confirmation_ratio
        reliability = rule.base_reliability
        if self.volume_confirmed(candles, ratio):
            reliability += VOLUME_CONFIRMED_BONUS
        else:
            reliability -= VOLUME_MISSING_PENALTY
        if rule.context is not None:
            reliability += LEVEL_CONTEXT_BONUS
        return min(max(reliability, 0.0), 100.0)

    def _candidate(self, rule: PatternRule, candles: Sequence[Candle], reliability: float) -> PatternCandidate:
        involved = candles[-rule.span :]
        entry = candles[-1].close
        buffer = self._config.stop_buffer_pct
        if rule.type == SignalType.BUY:
            stop_loss = min(c.low for c in involved) * (1 - buffer)
            take_profit = entry + self._config.reward_multiple * (entry - stop_loss)
        else:
            stop_loss = max(c.high for c in involved) * (1 + buffer)
            take_profit = entry - self._config.reward_multiple * (stop_loss - entry)
        plan = self._sizer.plan(entry, stop_loss, take_profit, reliability / 100)
        return PatternCandidate(
            pattern_name=rule.name,
            type=rule.type,
            reliability=reliability,
            entry=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            risk_reward=plan.risk_reward,
            position_size=plan.position_size,
        )
