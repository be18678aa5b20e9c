from __future__ import annotations

import logging
from typing import Sequence

from signal_desk.data.models import Candle
from signal_desk.errors import ComputationError
from signal_desk.indicators.models import IndicatorSet
from signal_desk.scoring.base import QualityReport, ScoringStrategy
from signal_desk.scoring.heuristic import HeuristicScoringStrategy
from signal_desk.scoring.volume import VolumeValidation
from signal_desk.signals.models import Signal

logger = logging.getLogger(__name__)


class QualityScorer:
    """Front door for quality scoring; the strategy behind it is swappable."""

    def __init__(self, strategy: ScoringStrategy | None = None) -> None:
        self._strategy = strategy or HeuristicScoringStrategy()

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    def score(
        self,
        signal: Signal,
        indicators: IndicatorSet,
        candles: Sequence[Candle],
        volume: VolumeValidation,
    ) -> QualityReport:
        report = self._strategy.score(signal, indicators, candles, volume)
        if not 0.0 <= report.quality_score <= 100.0:
            raise ComputationError(
                f"{self._strategy.name} returned quality {report.quality_score} outside [0, 100]"
            )
        logger.debug(
            "Quality %.1f (%s, momentum %.2f) via %s",
            report.quality_score,
            report.market_condition.value,
            report.momentum,
            self._strategy.name,
        )
        return report
