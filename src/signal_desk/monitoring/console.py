"""Operator-facing rendering with Rich."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from signal_desk.backtest.engine import BacktestReport
from signal_desk.persistence.signals import PersistedSignal
from signal_desk.pipeline.coordinator import CoordinatorResult
from signal_desk.pipeline.desk import HistoryEntry
from signal_desk.signals.models import Signal, SignalType
from signal_desk.tracking.performance import PerformanceMetrics


def _fmt_ts(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class SignalConsole:
    _LEVEL_STYLES = {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red",
    }
    _TYPE_STYLES = {
        SignalType.BUY: "green",
        SignalType.SELL: "red",
        SignalType.NEUTRAL: "white",
    }

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def log_event(
        self,
        message: str,
        *,
        level: str = "info",
        details: Mapping[str, Any] | None = None,
    ) -> None:
        style = self._LEVEL_STYLES.get(level, "white")
        if details:
            table = Table.grid(expand=True)
            table.add_column(justify="right", style="bold")
            table.add_column(ratio=1)
            for key, value in details.items():
                table.add_row(str(key), str(value))
            self._console.print(Panel(table, title=f"[bold]{message}", border_style=style))
            return
        self._console.print(f"[bold {style}]{message}[/bold {style}]")

    def on_result(self, pair: str, result: CoordinatorResult) -> None:
        self.log_signal(pair, result.signal, reason=result.processing_reason, saved=result.should_save)

    def log_signal(self, pair: str, signal: Signal, *, reason: str = "", saved: bool = False) -> None:
        style = self._TYPE_STYLES.get(signal.type, "white")
        table = Table(title=f"Signal {pair}", show_lines=True)
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("Type", f"[{style}]{signal.type.value}[/{style}]")
        table.add_row("Confidence", f"{signal.confidence:.3f}")
        table.add_row("Patterns", ", ".join(signal.patterns) or "-")
        if signal.is_directional:
            for field, value in [
                ("Entry", f"{signal.entry:.4f}"),
                ("Stop", f"{signal.stop_loss:.4f}"),
                ("Target", f"{signal.take_profit:.4f}"),
                ("R/R", f"{signal.risk_reward:.2f}"),
                ("Leverage", f"{signal.leverage:.0f}x"),
                ("Net P/L", f"+{signal.net_profit:.2f} / -{signal.net_loss:.2f}"),
            ]:
                table.add_row(field, value)
        table.add_row("Saved", "yes" if saved else "no")
        if reason:
            table.add_row("Reason", reason)
        self._console.print(table)

    def log_history(self, entries: Iterable[HistoryEntry]) -> None:
        table = Table(title="Recent signals")
        for column in ("Time", "Pair", "Type", "Confidence", "Saved"):
            table.add_column(column)
        for entry in entries:
            table.add_row(
                _fmt_ts(entry.timestamp),
                entry.pair,
                entry.signal.type.value,
                f"{entry.signal.confidence:.2f}",
                "yes" if entry.saved else "no",
            )
        self._console.print(table)

    def log_persisted(self, records: Iterable[PersistedSignal]) -> None:
        table = Table(title="Persisted signals")
        for column in ("Id", "Pair", "Type", "Status", "Outcome", "PnL"):
            table.add_column(column)
        for record in records:
            table.add_row(
                record.id,
                record.pair,
                record.signal.type.value,
                record.status.value,
                record.outcome.value if record.outcome else "-",
                f"{record.pnl:.2f}" if record.pnl is not None else "-",
            )
        self._console.print(table)

    def log_metrics(self, metrics: PerformanceMetrics, pair: str | None = None) -> None:
        self.log_event(
            f"Performance {pair or 'all pairs'}",
            level="success" if metrics.win_rate >= 50 else "warning",
            details={
                "Signals": f"{metrics.completed_signals}/{metrics.total_signals} resolved",
                "Win rate": f"{metrics.win_rate:.1f}%",
                "Avg return": f"{metrics.average_return:.2f}%",
                "Profit factor": f"{metrics.profit_factor:.2f}",
                "Sharpe": f"{metrics.sharpe_ratio:.2f}",
                "Max drawdown": f"{metrics.max_drawdown:.2f}%",
                "Streaks": f"W{metrics.longest_win_streak} / L{metrics.longest_loss_streak}",
            },
        )

    def log_backtest(self, report: BacktestReport) -> None:
        self.log_persisted(report.trades)
        self.log_metrics(report.metrics, pair=report.pair)
        self.log_event(
            f"Backtest {report.pair}",
            level="success" if report.total_pnl > 0 else "warning",
            details={
                "Candles": report.candles,
                "Evaluations": report.evaluations,
                "Trades": f"{len(report.trades)} ({report.blocked} blocked)",
                "Net PnL": f"{report.total_pnl:.2f}",
                "Kelly": f"{report.kelly_fraction:.1%}",
            },
        )
