"""Core domain models for module progress."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ModuleState(Enum):
    """Completion state of one module, ordered from new to done."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        """Position in the forward-only progression."""
        return _STATE_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


_STATE_ORDER = (ModuleState.NOT_STARTED, ModuleState.IN_PROGRESS, ModuleState.COMPLETED)


@dataclass(frozen=True)
class EntryPoint:
    """Location of the external script implementing a module."""

    directory: str
    script: str


@dataclass(frozen=True)
class ModuleDescriptor:
    """One registered learning module."""

    id: int
    name: str
    entry_point: EntryPoint


@dataclass(frozen=True)
class ProgressRecord:
    """Persisted progress for one module."""

    module_id: int
    state: ModuleState = ModuleState.NOT_STARTED
    started_at: str | None = None
    completed_at: str | None = None
    time_spent_seconds: float = 0.0
