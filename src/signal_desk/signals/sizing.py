from __future__ import annotations

from dataclasses import dataclass

from signal_desk.config.models import RiskConfig


@dataclass(slots=True)
class ConfidenceScaler:
    bands: tuple[float, ...]
    steps: tuple[float, ...]

    def select(self, confidence: float) -> float:
        idx = 0
        for threshold in self.bands:
            if confidence < threshold:
                break
            idx += 1
        idx = min(idx, len(self.steps) - 1)
        return self.steps[idx]


@dataclass(frozen=True, slots=True)
class PositionPlan:
    leverage: float
    position_size: float
    trading_fees: float
    net_profit: float
    net_loss: float
    risk_reward: float


class PositionSizer:
    """Leverage, size and fee bookkeeping for a proposed trade.

    Leverage comes from confidence bands so identical inputs always size
    identically.
    """

    def __init__(self, config: RiskConfig | None = None) -> None:
        self._config = config or RiskConfig()
        self._scaler = ConfidenceScaler(
            bands=tuple(self._config.confidence_bands),
            steps=tuple(self._config.leverage_steps),
        )

    def plan(self, entry: float, stop_loss: float, take_profit: float, confidence: float) -> PositionPlan:
        leverage = self._scaler.select(confidence)
        base = self._config.base_position
        position_size = base * leverage / entry if entry > 0 else 0.0
        fees = base * self._config.taker_fee_rate * 2
        net_profit = abs(take_profit - entry) * position_size - fees
        net_loss = abs(entry - stop_loss) * position_size + fees
        risk_reward = max(net_profit / net_loss, 0.0) if net_loss > 0 else 0.0
        return PositionPlan(
            leverage=leverage,
            position_size=position_size,
            trading_fees=fees,
            net_profit=net_profit,
            net_loss=net_loss,
            risk_reward=risk_reward,
        )
