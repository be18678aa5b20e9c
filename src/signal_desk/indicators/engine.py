"""Indicator calculation built on top of pandas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import pandas as pd

from signal_desk.config.models import IndicatorConfig
from signal_desk.data.models import Candle
from signal_desk.indicators.models import IndicatorSet


@dataclass(slots=True)
class IndicatorEngine:
    """Stateless: every call recomputes from the supplied window."""

    config: IndicatorConfig = field(default_factory=IndicatorConfig)

    def compute(self, candles: Sequence[Candle]) -> IndicatorSet:
        if not candles:
            return IndicatorSet()
        cfg = self.config
        df = candles_to_frame(candles)
        close, high, low = df["close"], df["high"], df["low"]
        n = len(df)

        rsi = self._rsi(close, cfg.rsi_period) if n >= cfg.rsi_period + 1 else None

        macd_line = macd_signal = None
        if n >= cfg.macd_slow + cfg.macd_signal - 1:
            fast = close.ewm(span=cfg.macd_fast, adjust=False).mean()
            slow = close.ewm(span=cfg.macd_slow, adjust=False).mean()
            macd_line = fast - slow
            macd_signal = macd_line.ewm(span=cfg.macd_signal, adjust=False).mean()

        sma = close.rolling(cfg.sma_period).mean() if n >= cfg.sma_period else None
        ema = close.ewm(span=cfg.ema_period, adjust=False).mean() if n >= cfg.ema_period else None

        bb_mid = bb_std = None
        if n >= cfg.bollinger_period:
            bb_mid = close.rolling(cfg.bollinger_period).mean()
            bb_std = close.rolling(cfg.bollinger_period).std(ddof=0)

        stoch_k = stoch_d = None
        if n >= cfg.stochastic_k:
            stoch_k = self._range_position(df, cfg.stochastic_k, neutral=0.5) * 100
            if n >= cfg.stochastic_k + cfg.stochastic_d - 1:
                stoch_d = stoch_k.rolling(cfg.stochastic_d).mean()

        williams = None
        if n >= cfg.williams_period:
            williams = (1 - self._range_position(df, cfg.williams_period, neutral=0.5)) * -100

        atr = self._atr(df, cfg.atr_period) if n >= cfg.atr_period + 1 else None
        adx = self._adx(df, cfg.adx_period) if n >= cfg.adx_period * 2 else None
        cci = self._cci(df, cfg.cci_period) if n >= cfg.cci_period else None

        return IndicatorSet(
            rsi=_last(rsi),
            rsi_prev=_last(rsi, 2),
            macd_line=_last(macd_line),
            macd_signal=_last(macd_signal),
            macd_hist=_last(macd_line - macd_signal) if macd_line is not None else None,
            macd_line_prev=_last(macd_line, 2),
            macd_signal_prev=_last(macd_signal, 2),
            sma=_last(sma),
            ema=_last(ema),
            bb_upper=_last(bb_mid + cfg.bollinger_std * bb_std) if bb_mid is not None else None,
            bb_middle=_last(bb_mid),
            bb_lower=_last(bb_mid - cfg.bollinger_std * bb_std) if bb_mid is not None else None,
            stoch_k=_last(stoch_k),
            stoch_d=_last(stoch_d),
            williams_r=_last(williams),
            atr=_last(atr),
            vwap=self._vwap(df),
            adx=_last(adx),
            cci=_last(cci),
        )

    @staticmethod
    def _rsi(series: pd.Series, period: int) -> pd.Series:
        delta = series.diff()
        gain = delta.clip(lower=0)
        loss = -delta.clip(upper=0)
        avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
        avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
        rsi = 100 - (100 / (1 + avg_gain / avg_loss))
        rsi = rsi.mask(avg_loss == 0, 100.0)
        return rsi.mask((avg_loss == 0) & (avg_gain == 0), 50.0)

    @staticmethod
    def _range_position(df: pd.DataFrame, period: int, neutral: float) -> pd.Series:
        highest = df["high"].rolling(period).max()
        lowest = df["low"].rolling(period).min()
        span = highest - lowest
        position = (df["close"] - lowest) / span
        return position.mask(span == 0, neutral)

    @staticmethod
    def _true_range(df: pd.DataFrame) -> pd.Series:
        prev_close = df["close"].shift(1)
        true_range = pd.concat(
            [
                df["high"] - df["low"],
                (df["high"] - prev_close).abs(),
                (df["low"] - prev_close).abs(),
            ],
            axis=1,
        ).max(axis=1)
        return true_range.iloc[1:]

    def _atr(self, df: pd.DataFrame, period: int) -> pd.Series:
        return self._true_range(df).rolling(period).mean()

    def _adx(self, df: pd.DataFrame, period: int) -> pd.Series:
        up_move = df["high"].diff()
        down_move = -df["low"].diff()
        plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0).iloc[1:]
        minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0).iloc[1:]
        alpha = 1 / period
        atr = self._true_range(df).ewm(alpha=alpha, adjust=False).mean()
        plus_di = 100 * plus_dm.ewm(alpha=alpha, adjust=False).mean() / atr
        minus_di = 100 * minus_dm.ewm(alpha=alpha, adjust=False).mean() / atr
        di_sum = plus_di + minus_di
        dx = (100 * (plus_di - minus_di).abs() / di_sum).where(di_sum > 0, 0.0).fillna(0.0)
        return dx.ewm(alpha=alpha, adjust=False).mean()

    @staticmethod
    def _cci(df: pd.DataFrame, period: int) -> pd.Series:
        typical = (df["high"] + df["low"] + df["close"]) / 3
        mean = typical.rolling(period).mean()
        deviation = typical.rolling(period).apply(lambda x: abs(x - x.mean()).mean(), raw=True)
        cci = (typical - mean) / (0.015 * deviation)
        return cci.mask(deviation == 0, 0.0)

    @staticmethod
    def _vwap(df: pd.DataFrame) -> Optional[float]:
        total_volume = df["volume"].sum()
        if total_volume <= 0:
            return None
        typical = (df["high"] + df["low"] + df["close"]) / 3
        return float((typical * df["volume"]).sum() / total_volume)


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "timestamp": [c.timestamp for c in candles],
            "open": [c.open for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        }
    ).set_index("timestamp")


def _last(series: pd.Series | None, offset: int = 1) -> Optional[float]:
    if series is None or len(series) < offset:
        return None
    value = series.iloc[-offset]
    if pd.isna(value):
        return None
    return float(value)
