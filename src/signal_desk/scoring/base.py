from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from signal_desk.data.models import Candle
from signal_desk.indicators.models import IndicatorSet
from signal_desk.scoring.volume import VolumeValidation
from signal_desk.signals.models import MarketCondition, Signal


@dataclass(frozen=True, slots=True)
class QualityReport:
    quality_score: float  # 0-100
    market_condition: MarketCondition
    momentum: float  # abs % change of the latest close
    volatility: float = 0.0  # stdev of recent % changes
    trend: float = 0.0  # mean of recent % changes


class ScoringStrategy(ABC):
    name: str = "base"

    @abstractmethod
    def score(
        self,
        signal: Signal,
        indicators: IndicatorSet,
        candles: Sequence[Candle],
        volume: VolumeValidation,
    ) -> QualityReport:
        raise NotImplementedError
