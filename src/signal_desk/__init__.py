"""Top-level package for the candlestick signal desk."""

__all__ = [
    "config",
    "data",
    "indicators",
    "patterns",
    "signals",
    "scoring",
    "policy",
    "pipeline",
    "persistence",
    "tracking",
    "backtest",
    "scheduler",
    "monitoring",
]
