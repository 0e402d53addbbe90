"""Application service wiring registry, progress store, gate, runner, and reporter."""

from __future__ import annotations

from dataclasses import dataclass

from .config import TrainerConfig
from .gate import GatePolicy
from .models import ModuleDescriptor, ModuleState, ProgressRecord
from .progress import ProgressStore
from .registry import ModuleRegistry, load_registry, load_registry_from_file
from .reporter import ProgressReporter, ProgressSummary
from .runner import Executor, LaunchResult, ModuleRunner, SubprocessExecutor


@dataclass(frozen=True)
class ModuleStatus:
    """Menu row for one module."""

    module: ModuleDescriptor
    record: ProgressRecord
    unlocked: bool

    @property
    def state(self) -> ModuleState:
        return self.record.state


class TrainerService:
    """Coordinates module progress for the interactive shell."""

    def __init__(
        self,
        config: TrainerConfig,
        registry: ModuleRegistry | None = None,
        store: ProgressStore | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Build components from configuration unless injected."""
        self.config = config
        if registry is None:
            registry = load_registry_from_file(config.registry_path) if config.registry_path else load_registry()
        self.registry = registry
        self.progress = store or ProgressStore(config.db_path, module_ids=registry.ids())
        self.gate = GatePolicy(registry, self.progress)
        self.runner = ModuleRunner(
            self.gate,
            self.progress,
            executor or SubprocessExecutor(config.course_root, config.interpreter),
        )
        self.reporter = ProgressReporter(registry, self.progress)

    def list_module_states(self) -> list[ModuleStatus]:
        """Return module rows in registry order."""
        records = {record.module_id: record for record in self.progress.records()}
        completed = {module_id for module_id, record in records.items() if record.state is ModuleState.COMPLETED}
        rows: list[ModuleStatus] = []
        for module in self.registry:
            unlocked = module.id == self.registry.first_id or (module.id - 1) in completed
            record = records.get(module.id, ProgressRecord(module_id=module.id))
            rows.append(ModuleStatus(module=module, record=record, unlocked=unlocked))
        return rows

    def get_module(self, module_id: int) -> ModuleDescriptor:
        return self.registry.get(module_id)

    def launch(self, module_id: int) -> LaunchResult:
        """Launch one module through the gate."""
        return self.runner.launch(module_id)

    def summary(self) -> ProgressSummary:
        return self.reporter.summary()

    def reset_progress(self) -> None:
        """Clear all module progress."""
        self.progress.reset_all()

    def close(self) -> None:
        """Close resources."""
        self.progress.close()
