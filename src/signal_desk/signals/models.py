"""Value objects shared by the signal pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class Outcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"


class MarketCondition(str, Enum):
    HIGH_VOLATILITY = "HIGH_VOLATILITY"
    MODERATE_VOLATILITY = "MODERATE_VOLATILITY"
    LOW_VOLATILITY = "LOW_VOLATILITY"
    TRENDING = "TRENDING"
    RANGING = "RANGING"


@dataclass(frozen=True, slots=True)
class PatternCandidate:
    pattern_name: str
    type: SignalType
    reliability: float  # 0-100
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    position_size: float


@dataclass(frozen=True, slots=True)
class PatternScan:
    best_pattern: Optional[PatternCandidate]
    volatility: float  # recent high/low range as % of price
    matches: Tuple[PatternCandidate, ...] = ()


@dataclass(frozen=True, slots=True)
class SignalDiagnostics:
    buy_votes: float = 0.0
    sell_votes: float = 0.0
    rsi: Optional[float] = None
    macd_bullish: bool = False
    pattern_count: int = 0
    pattern_reliability: float = 0.0
    volatility: float = 0.0


@dataclass(frozen=True, slots=True)
class Signal:
    type: SignalType
    confidence: float  # 0-1
    patterns: Tuple[str, ...]
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    leverage: float
    position_size: float
    trading_fees: float
    net_profit: float
    net_loss: float
    diagnostics: SignalDiagnostics = field(default_factory=SignalDiagnostics)

    @property
    def is_directional(self) -> bool:
        return self.type != SignalType.NEUTRAL

    def with_confidence(self, confidence: float) -> "Signal":
        return replace(self, confidence=min(max(confidence, 0.0), 1.0))

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["type"] = self.type.value
        payload["patterns"] = list(self.patterns)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Signal":
        """Strict decode: missing required keys raise ``KeyError``."""
        diagnostics = payload.get("diagnostics") or {}
        return cls(
            type=SignalType(payload["type"]),
            confidence=float(payload["confidence"]),
            patterns=tuple(str(p) for p in payload["patterns"]),
            entry=float(payload["entry"]),
            stop_loss=float(payload["stop_loss"]),
            take_profit=float(payload["take_profit"]),
            risk_reward=float(payload["risk_reward"]),
            leverage=float(payload["leverage"]),
            position_size=float(payload["position_size"]),
            trading_fees=float(payload["trading_fees"]),
            net_profit=float(payload["net_profit"]),
            net_loss=float(payload["net_loss"]),
            diagnostics=SignalDiagnostics(**diagnostics),
        )


def neutral_signal(
    entry: float,
    confidence: float = 0.0,
    patterns: Tuple[str, ...] = (),
    diagnostics: SignalDiagnostics | None = None,
) -> Signal:
    return Signal(
        type=SignalType.NEUTRAL,
        confidence=confidence,
        patterns=patterns,
        entry=entry,
        stop_loss=entry,
        take_profit=entry,
        risk_reward=0.0,
        leverage=0.0,
        position_size=0.0,
        trading_fees=0.0,
        net_profit=0.0,
        net_loss=0.0,
        diagnostics=diagnostics or SignalDiagnostics(),
    )
