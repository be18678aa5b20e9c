"""Candlestick shape predicates and the pattern catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Optional, Sequence

from signal_desk.data.models import Candle
from signal_desk.signals.models import SignalType

Context = Literal["support", "resistance"]


def body(c: Candle) -> float:
    return abs(c.close - c.open)


def full_range(c: Candle) -> float:
    return c.high - c.low


def upper_shadow(c: Candle) -> float:
    return c.high - max(c.open, c.close)


def lower_shadow(c: Candle) -> float:
    return min(c.open, c.close) - c.low


def bullish(c: Candle) -> bool:
    return c.close > c.open


def bearish(c: Candle) -> bool:
    return c.close < c.open


def bullish_engulfing(w: Sequence[Candle]) -> bool:
    prev, cur = w[-2], w[-1]
    return (
        bearish(prev)
        and bullish(cur)
        and cur.open <= prev.close
        and cur.close > prev.open
        and body(cur) > body(prev) * 1.1
    )


def bearish_engulfing(w: Sequence[Candle]) -> bool:
    prev, cur = w[-2], w[-1]
    return (
        bullish(prev)
        and bearish(cur)
        and cur.open >= prev.close
        and cur.close < prev.open
        and body(cur) > body(prev) * 1.1
    )


def morning_star(w: Sequence[Candle]) -> bool:
    first, second, third = w[-3], w[-2], w[-1]
    return (
        bearish(first)
        and body(second) < body(first) * 0.5
        and bullish(third)
        and body(third) > body(first) * 0.6
        and third.close > (first.open + first.close) / 2
    )


def evening_star(w: Sequence[Candle]) -> bool:
    first, second, third = w[-3], w[-2], w[-1]
    return (
        bullish(first)
        and body(second) < body(first) * 0.5
        and bearish(third)
        and body(third) > body(first) * 0.6
        and third.close < (first.open + first.close) / 2
    )


def dragonfly_doji(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    return rng > 0 and body(c) / rng < 0.1 and lower_shadow(c) > rng * 0.6 and upper_shadow(c) < rng * 0.1


def gravestone_doji(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    return rng > 0 and body(c) / rng < 0.1 and upper_shadow(c) > rng * 0.6 and lower_shadow(c) < rng * 0.1


def three_white_soldiers(w: Sequence[Candle]) -> bool:
    a, b, c = w[-3], w[-2], w[-1]
    return (
        bullish(a)
        and bullish(b)
        and bullish(c)
        and b.close > a.close
        and c.close > b.close
        and a.open < b.open < a.close
        and b.open < c.open < b.close
    )


def three_black_crows(w: Sequence[Candle]) -> bool:
    a, b, c = w[-3], w[-2], w[-1]
    return (
        bearish(a)
        and bearish(b)
        and bearish(c)
        and b.close < a.close
        and c.close < b.close
        and a.close < b.open < a.open
        and b.close < c.open < b.open
    )


def piercing(w: Sequence[Candle]) -> bool:
    prev, cur = w[-2], w[-1]
    midpoint = (prev.open + prev.close) / 2
    return bearish(prev) and bullish(cur) and cur.open < prev.close and midpoint < cur.close < prev.open


def dark_cloud_cover(w: Sequence[Candle]) -> bool:
    prev, cur = w[-2], w[-1]
    midpoint = (prev.open + prev.close) / 2
    return bullish(prev) and bearish(cur) and cur.open > prev.close and prev.open < cur.close < midpoint


def hammer_shape(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    b = body(c)
    return rng > 0 and lower_shadow(c) > b * 2 and upper_shadow(c) < b * 0.5 and b / rng > 0.1


def inverted_hammer_shape(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    b = body(c)
    return rng > 0 and upper_shadow(c) > b * 2 and lower_shadow(c) < b * 0.5 and b / rng > 0.1


def shooting_star(w: Sequence[Candle]) -> bool:
    return inverted_hammer_shape(w) and bearish(w[-1])


def bullish_marubozu(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    return (
        bullish(c)
        and rng > 0
        and lower_shadow(c) < rng * 0.05
        and upper_shadow(c) < rng * 0.05
        and body(c) / rng > 0.9
    )


def bearish_marubozu(w: Sequence[Candle]) -> bool:
    c = w[-1]
    rng = full_range(c)
    return (
        bearish(c)
        and rng > 0
        and lower_shadow(c) < rng * 0.05
        and upper_shadow(c) < rng * 0.05
        and body(c) / rng > 0.9
    )


def resistance_breakout(w: Sequence[Candle]) -> bool:
    prior = w[-21:-1]
    return bool(prior) and w[-1].close > max(c.high for c in prior) * 1.0005


def support_breakdown(w: Sequence[Candle]) -> bool:
    prior = w[-21:-1]
    return bool(prior) and w[-1].close < min(c.low for c in prior) * 0.9995


@dataclass(frozen=True, slots=True)
class PatternRule:
    name: str
    type: SignalType
    base_reliability: float
    span: int  # candles the pattern occupies
    matches: Callable[[Sequence[Candle]], bool]
    context: Optional[Context] = None
    volume_ratio: Optional[float] = None  # overrides the detector default


CATALOG: tuple[PatternRule, ...] = (
    PatternRule("Bullish Engulfing", SignalType.BUY, 75, 2, bullish_engulfing),
    PatternRule("Bearish Engulfing", SignalType.SELL, 73, 2, bearish_engulfing),
    PatternRule("Morning Star", SignalType.BUY, 78, 3, morning_star),
    PatternRule("Evening Star", SignalType.SELL, 76, 3, evening_star),
    PatternRule("Dragonfly Doji", SignalType.BUY, 67, 1, dragonfly_doji, context="support"),
    PatternRule("Gravestone Doji", SignalType.SELL, 65, 1, gravestone_doji, context="resistance"),
    PatternRule("Three White Soldiers", SignalType.BUY, 70, 3, three_white_soldiers),
    PatternRule("Three Black Crows", SignalType.SELL, 68, 3, three_black_crows),
    PatternRule("Piercing Pattern", SignalType.BUY, 64, 2, piercing),
    PatternRule("Dark Cloud Cover", SignalType.SELL, 62, 2, dark_cloud_cover),
    PatternRule("Hammer at Support", SignalType.BUY, 66, 1, hammer_shape, context="support"),
    PatternRule(
        "Shooting Star at Resistance", SignalType.SELL, 64, 1, shooting_star, context="resistance"
    ),
    PatternRule("Bullish Marubozu", SignalType.BUY, 60, 1, bullish_marubozu, volume_ratio=1.5),
    PatternRule("Bearish Marubozu", SignalType.SELL, 58, 1, bearish_marubozu, volume_ratio=1.5),
    PatternRule(
        "Inverted Hammer Reversal", SignalType.BUY, 58, 1, inverted_hammer_shape, context="support"
    ),
    PatternRule("Hanging Man at Top", SignalType.SELL, 57, 1, hammer_shape, context="resistance"),
    PatternRule("Resistance Breakout", SignalType.BUY, 65, 1, resistance_breakout),
    PatternRule("Support Breakdown", SignalType.SELL, 63, 1, support_breakdown),
)
