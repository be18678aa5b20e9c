from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class IndicatorSet:
    """Latest indicator readings for one candle window.

    ``None`` marks an indicator whose period is longer than the window.
    """

    rsi: Optional[float] = None
    rsi_prev: Optional[float] = None
    macd_line: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None
    macd_line_prev: Optional[float] = None
    macd_signal_prev: Optional[float] = None
    sma: Optional[float] = None
    ema: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    stoch_k: Optional[float] = None
    stoch_d: Optional[float] = None
    williams_r: Optional[float] = None
    atr: Optional[float] = None
    vwap: Optional[float] = None
    adx: Optional[float] = None
    cci: Optional[float] = None

    def unavailable(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is None]

    @property
    def macd_bullish(self) -> bool:
        if self.macd_line is None or self.macd_signal is None:
            return False
        return self.macd_line > self.macd_signal
