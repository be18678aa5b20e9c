"""Directional signal generation that fuses patterns and indicator votes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from signal_desk.config.models import RiskConfig
from signal_desk.data.models import Candle
from signal_desk.errors import InsufficientDataError
from signal_desk.indicators.models import IndicatorSet
from signal_desk.signals.models import (
    PatternCandidate,
    PatternScan,
    Signal,
    SignalDiagnostics,
    SignalType,
    neutral_signal,
)
from signal_desk.signals.sizing import PositionSizer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Votes:
    buy: float = 0.0
    sell: float = 0.0

    def add(self, side: SignalType, weight: float) -> None:
        if side == SignalType.BUY:
            self.buy += weight
        elif side == SignalType.SELL:
            self.sell += weight

    @property
    def total(self) -> float:
        return self.buy + self.sell


class SignalGenerator:
    PATTERN_WEIGHT = 3.0
    RSI_OVERSOLD = 35.0
    RSI_OVERBOUGHT = 65.0
    BAND_TOUCH_PCT = 0.002
    PRICE_CHANGE_PCT = 0.1
    MIN_EDGE = 1.0
    CONFIDENCE_CAP = 0.95

    def __init__(self, sizer: PositionSizer | None = None, risk: RiskConfig | None = None) -> None:
        self._risk = risk or RiskConfig()
        self._sizer = sizer or PositionSizer(self._risk)

    def generate(self, candles: Sequence[Candle], indicators: IndicatorSet, scan: PatternScan) -> Signal:
        if len(candles) < 2:
            raise InsufficientDataError("at least two candles are required to generate a signal")
        close = candles[-1].close
        prev_close = candles[-2].close
        votes = self._vote(close, prev_close, indicators, scan.best_pattern)

        direction = SignalType.NEUTRAL
        if votes.buy - votes.sell >= self.MIN_EDGE:
            direction = SignalType.BUY
        elif votes.sell - votes.buy >= self.MIN_EDGE:
            direction = SignalType.SELL

        best = scan.best_pattern
        aligned: Optional[PatternCandidate] = best if best is not None and best.type == direction else None
        diagnostics = SignalDiagnostics(
            buy_votes=round(votes.buy, 4),
            sell_votes=round(votes.sell, 4),
            rsi=indicators.rsi,
            macd_bullish=indicators.macd_bullish,
            pattern_count=len(scan.matches),
            pattern_reliability=aligned.reliability if aligned else 0.0,
            volatility=scan.volatility,
        )

        if direction == SignalType.NEUTRAL:
            agreement = max(votes.buy, votes.sell) / votes.total if votes.total else 0.0
            return neutral_signal(
                close,
                confidence=round(0.3 * agreement, 4),
                patterns=tuple(m.pattern_name for m in scan.matches),
                diagnostics=diagnostics,
            )

        # only patterns that agree with the direction are reported
        pattern_names = tuple(m.pattern_name for m in scan.matches if m.type == direction)
        confidence = self._confidence(direction, votes, aligned)
        entry, stop_loss, take_profit = self._levels(direction, close, confidence, indicators, aligned)
        plan = self._sizer.plan(entry, stop_loss, take_profit, confidence)
        return Signal(
            type=direction,
            confidence=confidence,
            patterns=pattern_names,
            entry=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            risk_reward=plan.risk_reward,
            leverage=plan.leverage,
            position_size=plan.position_size,
            trading_fees=plan.trading_fees,
            net_profit=plan.net_profit,
            net_loss=plan.net_loss,
            diagnostics=diagnostics,
        )

    def _vote(
        self,
        close: float,
        prev_close: float,
        ind: IndicatorSet,
        pattern: Optional[PatternCandidate],
    ) -> Votes:
        votes = Votes()
        if pattern is not None:
            votes.add(pattern.type, self.PATTERN_WEIGHT * pattern.reliability / 100)

        if ind.rsi is not None:
            if ind.rsi < self.RSI_OVERSOLD:
                votes.buy += 2
            elif ind.rsi > self.RSI_OVERBOUGHT:
                votes.sell += 2
            if ind.rsi_prev is not None:
                if ind.rsi > ind.rsi_prev and ind.rsi < 70:
                    votes.buy += 1
                elif ind.rsi < ind.rsi_prev and ind.rsi > 30:
                    votes.sell += 1

        if ind.macd_line is not None and ind.macd_signal is not None:
            if ind.macd_line_prev is not None and ind.macd_signal_prev is not None:
                if ind.macd_line_prev <= ind.macd_signal_prev and ind.macd_line > ind.macd_signal:
                    votes.buy += 3
                elif ind.macd_line_prev >= ind.macd_signal_prev and ind.macd_line < ind.macd_signal:
                    votes.sell += 3
            if ind.macd_line > ind.macd_signal and ind.macd_line > 0:
                votes.buy += 1
            elif ind.macd_line < ind.macd_signal and ind.macd_line < 0:
                votes.sell += 1

        if ind.bb_upper is not None and ind.bb_lower is not None and ind.bb_middle is not None:
            if ind.bb_upper > ind.bb_lower:
                if close <= ind.bb_lower * (1 + self.BAND_TOUCH_PCT):
                    votes.buy += 2
                elif close >= ind.bb_upper * (1 - self.BAND_TOUCH_PCT):
                    votes.sell += 2
            if close > ind.bb_middle:
                votes.buy += 1
            elif close < ind.bb_middle:
                votes.sell += 1

        if prev_close > 0:
            change_pct = (close - prev_close) / prev_close * 100
            if change_pct > self.PRICE_CHANGE_PCT:
                votes.buy += 1
            elif change_pct < -self.PRICE_CHANGE_PCT:
                votes.sell += 1
        return votes

    def _confidence(
        self, direction: SignalType, votes: Votes, aligned: Optional[PatternCandidate]
    ) -> float:
        winning = votes.buy if direction == SignalType.BUY else votes.sell
        agreement = winning / votes.total if votes.total else 0.0
        pattern_part = aligned.reliability / 100 if aligned else 0.0
        confidence = 0.55 * pattern_part + 0.35 * agreement + 0.10 * min(winning / 6, 1.0)
        return round(min(confidence, self.CONFIDENCE_CAP), 4)

    def _levels(
        self,
        direction: SignalType,
        close: float,
        confidence: float,
        ind: IndicatorSet,
        aligned: Optional[PatternCandidate],
    ) -> tuple[float, float, float]:
        if aligned is not None:
            return aligned.entry, aligned.stop_loss, aligned.take_profit
        atr = ind.atr if ind.atr else close * self._risk.atr_fallback_pct
        stop_mult, target_mult = (0.6, 3.5) if confidence > 0.4 else (0.8, 2.5)
        if direction == SignalType.BUY:
            return close, close - atr * stop_mult, close + atr * target_mult
        return close, close + atr * stop_mult, close - atr * target_mult
