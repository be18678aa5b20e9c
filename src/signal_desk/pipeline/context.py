from __future__ import annotations

from dataclasses import asdict, dataclass

from signal_desk.config.models import AppConfig
from signal_desk.policy.activity import ActivityWindow
from signal_desk.policy.duplicates import DuplicateGuard


@dataclass(slots=True)
class PipelineStats:
    evaluated: int = 0
    skipped: int = 0
    neutral: int = 0
    invalid: int = 0
    below_threshold: int = 0
    duplicates: int = 0
    accepted: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class PipelineContext:
    """Cross-cycle state owned by one pipeline instance.

    Nothing here is module-global: two pipelines built from two contexts
    never see each other's cooldowns or activity.
    """

    def __init__(self, cooldown_seconds: float = 600.0, activity_window_minutes: float = 60.0) -> None:
        self.guard = DuplicateGuard(cooldown_seconds)
        self.activity = ActivityWindow(activity_window_minutes)
        self.stats = PipelineStats()

    @classmethod
    def from_config(cls, config: AppConfig) -> "PipelineContext":
        return cls(
            cooldown_seconds=config.coordinator.cooldown_seconds,
            activity_window_minutes=config.thresholds.activity_window_minutes,
        )

    def clear(self) -> None:
        self.guard.reset()
        self.activity.clear()
        self.stats = PipelineStats()
