"""Per-cycle signal decision: display, save and track."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from signal_desk.config.models import AppConfig
from signal_desk.data.models import Candle, MarketSnapshot
from signal_desk.errors import InsufficientDataError, SignalValidationError
from signal_desk.indicators.engine import IndicatorEngine
from signal_desk.patterns.detector import PatternDetector
from signal_desk.pipeline.context import PipelineContext
from signal_desk.policy.thresholds import ThresholdPolicy, Thresholds
from signal_desk.scoring.base import QualityReport
from signal_desk.scoring.quality import QualityScorer
from signal_desk.scoring.volume import VolumeValidation, VolumeValidator
from signal_desk.signals.generator import SignalGenerator
from signal_desk.signals.models import Signal, SignalType, neutral_signal
from signal_desk.signals.sizing import PositionSizer

logger = logging.getLogger(__name__)

ERROR_RECOVERY_TAG = "Error Recovery"


@dataclass(frozen=True, slots=True)
class SignalCandidate:
    pair: str
    signal: Signal
    quality: Optional[QualityReport]
    volume: Optional[VolumeValidation]
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CoordinatorResult:
    pair: str
    signal: Signal
    should_save: bool
    should_track: bool
    processing_reason: str
    quality_score: Optional[float] = None
    thresholds: Optional[Thresholds] = None


def fallback_signal(candles: Sequence[Candle]) -> Signal:
    entry = candles[-1].close if candles else 0.0
    return neutral_signal(entry, confidence=0.0, patterns=(ERROR_RECOVERY_TAG,))


def validate_signal(signal: Signal, min_risk_reward: float = 0.0) -> None:
    prices = (signal.entry, signal.stop_loss, signal.take_profit)
    if any(not math.isfinite(p) or p <= 0 for p in prices):
        raise SignalValidationError(f"non-positive or non-finite price levels {prices}")
    if not 0.0 <= signal.confidence <= 1.0:
        raise SignalValidationError(f"confidence {signal.confidence} outside [0, 1]")
    if signal.type == SignalType.BUY and not signal.stop_loss < signal.entry < signal.take_profit:
        raise SignalValidationError("BUY levels must satisfy stop < entry < target")
    if signal.type == SignalType.SELL and not signal.take_profit < signal.entry < signal.stop_loss:
        raise SignalValidationError("SELL levels must satisfy target < entry < stop")
    if not math.isfinite(signal.risk_reward) or signal.risk_reward < min_risk_reward:
        raise SignalValidationError(f"risk/reward {signal.risk_reward:.2f} below {min_risk_reward:.2f}")


class SignalCoordinator:
    """Turn a candle window into one authoritative verdict.

    ``prepare`` is the pure, potentially slow half (indicators, patterns,
    scoring) and may run off the event loop. ``decide`` is the fast
    stateful half (thresholds, cooldown, activity) and must run on the loop
    so that two decisions for one pair never interleave. ``prepare`` touches
    no shared state; a ``None`` candidate is counted by the caller through
    ``record_skip``.
    """

    def __init__(
        self,
        config: AppConfig,
        context: PipelineContext | None = None,
        *,
        engine: IndicatorEngine | None = None,
        detector: PatternDetector | None = None,
        generator: SignalGenerator | None = None,
        scorer: QualityScorer | None = None,
        policy: ThresholdPolicy | None = None,
        validator: VolumeValidator | None = None,
    ) -> None:
        self._config = config
        self.context = context or PipelineContext.from_config(config)
        sizer = PositionSizer(config.risk)
        self._engine = engine or IndicatorEngine(config.indicators)
        self._detector = detector or PatternDetector(config.patterns, sizer)
        self._generator = generator or SignalGenerator(sizer, config.risk)
        self._scorer = scorer or QualityScorer()
        self._policy = policy or ThresholdPolicy(config.thresholds)
        self._validator = validator or VolumeValidator()

    def prepare(
        self,
        pair: str,
        candles: Sequence[Candle],
        snapshot: MarketSnapshot | None = None,
    ) -> SignalCandidate | None:
        if len(candles) < self._config.data.min_candles:
            logger.debug("Skipping %s: %d candles < %d", pair, len(candles), self._config.data.min_candles)
            return None
        try:
            indicators = self._engine.compute(candles)
            scan = self._detector.detect(candles)
            signal = self._generator.generate(candles, indicators, scan)
            if snapshot is not None:
                volume_value = snapshot.volume24h
            else:
                volume_value = self._validator.estimate_from_candles(candles)
            volume = self._validator.validate(pair, volume_value)
            quality = self._scorer.score(signal, indicators, candles, volume)
        except InsufficientDataError as exc:
            logger.debug("Skipping %s: %s", pair, exc)
            return None
        except Exception as exc:
            logger.exception("Signal computation failed for %s: %s", pair, exc)
            return SignalCandidate(
                pair=pair,
                signal=fallback_signal(candles),
                quality=None,
                volume=None,
                error=str(exc) or type(exc).__name__,
            )
        return SignalCandidate(pair=pair, signal=signal, quality=quality, volume=volume)

    async def prepare_async(
        self,
        pair: str,
        candles: Sequence[Candle],
        snapshot: MarketSnapshot | None = None,
    ) -> SignalCandidate | None:
        return await asyncio.to_thread(self.prepare, pair, list(candles), snapshot)

    def decide(self, candidate: SignalCandidate, now_ms: int) -> CoordinatorResult:
        stats = self.context.stats
        stats.evaluated += 1
        self.context.activity.record_evaluation(now_ms)
        try:
            return self._decide(candidate, now_ms)
        except Exception as exc:
            stats.errors += 1
            logger.exception("Signal decision failed for %s: %s", candidate.pair, exc)
            return CoordinatorResult(
                pair=candidate.pair,
                signal=neutral_signal(candidate.signal.entry, patterns=(ERROR_RECOVERY_TAG,)),
                should_save=False,
                should_track=False,
                processing_reason=f"Error recovery: {exc}",
            )

    def _decide(self, candidate: SignalCandidate, now_ms: int) -> CoordinatorResult:
        stats = self.context.stats
        pair = candidate.pair
        signal = candidate.signal

        if candidate.error is not None:
            stats.errors += 1
            return self._display_only(candidate, f"Error recovery: {candidate.error}")

        if signal.type == SignalType.NEUTRAL:
            stats.neutral += 1
            return self._display_only(candidate, "Neutral signal: display only")

        try:
            validate_signal(signal, self._config.coordinator.min_risk_reward)
        except SignalValidationError as exc:
            stats.invalid += 1
            logger.warning("Signal for %s failed validation: %s", pair, exc)
            return self._display_only(candidate, f"Validation failed: {exc}")

        quality = candidate.quality
        volume = candidate.volume
        if quality is None or volume is None:
            stats.invalid += 1
            return self._display_only(candidate, "Missing quality report: display only")
        thresholds = self._policy.get_thresholds(
            pair,
            quality.market_condition,
            quality.momentum,
            volume,
            self.context.activity.snapshot(now_ms),
        )
        passes = (
            signal.confidence >= thresholds.confidence
            and quality.quality_score >= thresholds.quality
        )
        logger.debug(
            "%s %s conf %.3f/%.3f quality %.1f/%.1f",
            pair,
            signal.type.value,
            signal.confidence,
            thresholds.confidence,
            quality.quality_score,
            thresholds.quality,
        )
        if not passes:
            stats.below_threshold += 1
            return CoordinatorResult(
                pair=pair,
                signal=signal,
                should_save=False,
                should_track=False,
                processing_reason=(
                    f"Below thresholds: confidence {signal.confidence:.2f} < {thresholds.confidence:.2f}"
                    f" or quality {quality.quality_score:.1f} < {thresholds.quality:.1f}"
                ),
                quality_score=quality.quality_score,
                thresholds=thresholds,
            )

        if not self.context.guard.record(signal.type, pair, now_ms):
            stats.duplicates += 1
            return CoordinatorResult(
                pair=pair,
                signal=signal,
                should_save=False,
                should_track=False,
                processing_reason="Duplicate within cooldown: display only",
                quality_score=quality.quality_score,
                thresholds=thresholds,
            )

        stats.accepted += 1
        self.context.activity.record_accept(now_ms)
        should_track = self._config.coordinator.performance_tracking
        logger.info(
            "Accepted %s %s (confidence %.2f, quality %.1f)",
            signal.type.value,
            pair,
            signal.confidence,
            quality.quality_score,
        )
        return CoordinatorResult(
            pair=pair,
            signal=signal,
            should_save=True,
            should_track=should_track,
            processing_reason="Accepted" if should_track else "Accepted: tracking disabled",
            quality_score=quality.quality_score,
            thresholds=thresholds,
        )

    def evaluate(
        self,
        pair: str,
        candles: Sequence[Candle],
        now_ms: int,
        snapshot: MarketSnapshot | None = None,
    ) -> CoordinatorResult | None:
        candidate = self.prepare(pair, candles, snapshot)
        if candidate is None:
            self.record_skip()
            return None
        return self.decide(candidate, now_ms)

    async def evaluate_async(
        self,
        pair: str,
        candles: Sequence[Candle],
        now_ms: int,
        snapshot: MarketSnapshot | None = None,
    ) -> CoordinatorResult | None:
        candidate = await self.prepare_async(pair, candles, snapshot)
        if candidate is None:
            self.record_skip()
            return None
        return self.decide(candidate, now_ms)

    def record_skip(self) -> None:
        self.context.stats.skipped += 1

    def stats(self) -> dict:
        payload = self.context.stats.as_dict()
        payload.update(self.context.guard.stats())
        return payload

    def clear(self) -> None:
        self.context.clear()

    @staticmethod
    def _display_only(candidate: SignalCandidate, reason: str) -> CoordinatorResult:
        quality = candidate.quality
        return CoordinatorResult(
            pair=candidate.pair,
            signal=candidate.signal,
            should_save=False,
            should_track=False,
            processing_reason=reason,
            quality_score=quality.quality_score if quality else None,
        )
