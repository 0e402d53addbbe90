"""Derived progress statistics and achievements."""

from __future__ import annotations

from dataclasses import dataclass

from .progress import ProgressStore
from .registry import ModuleRegistry

FIRST_STEPS = "First Steps"
HALFWAY_THERE = "Halfway There"
KUBERNETES_MASTER = "Kubernetes Master"

ACHIEVEMENT_DESCRIPTIONS = {
    FIRST_STEPS: "Completed your first module",
    HALFWAY_THERE: "Half of all modules completed",
    KUBERNETES_MASTER: "All modules completed!",
}


@dataclass(frozen=True)
class ProgressSummary:
    """Aggregate progress snapshot."""

    completed_count: int
    total: int
    percent: int
    achievements: frozenset[str]
    time_spent_seconds: float


def unlocked_achievements(completed_count: int, total: int) -> frozenset[str]:
    """Return achievement names unlocked by a completion count."""
    unlocked: set[str] = set()
    if completed_count >= 1:
        unlocked.add(FIRST_STEPS)
    if total > 0 and 2 * completed_count >= total:
        unlocked.add(HALFWAY_THERE)
    if total > 0 and completed_count == total:
        unlocked.add(KUBERNETES_MASTER)
    return frozenset(unlocked)


def progress_bar(percent: int, width: int = 20) -> str:
    """Render a fixed-width bar, one cell per 100/width percent."""
    filled = max(0, min(width, percent * width // 100))
    return "[" + "█" * filled + "░" * (width - filled) + "]"


class ProgressReporter:
    """Read-only summaries over the progress store."""

    def __init__(self, registry: ModuleRegistry, store: ProgressStore) -> None:
        self.registry = registry
        self.store = store

    def summary(self) -> ProgressSummary:
        """Recompute completion statistics from current store state."""
        completed = self.store.completed_ids()
        completed_count = len([module_id for module_id in self.registry.ids() if module_id in completed])
        total = len(self.registry)
        percent = (100 * completed_count) // total
        time_spent = sum(record.time_spent_seconds for record in self.store.records())
        return ProgressSummary(
            completed_count=completed_count,
            total=total,
            percent=percent,
            achievements=unlocked_achievements(completed_count, total),
            time_spent_seconds=time_spent,
        )
