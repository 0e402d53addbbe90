"""Sequential unlock rule for learning modules."""

from __future__ import annotations

from .models import ModuleState
from .progress import ProgressStore
from .registry import ModuleRegistry


class GatePolicy:
    """Module N may launch only once module N-1 is completed; the first module is always open."""

    def __init__(self, registry: ModuleRegistry, store: ProgressStore) -> None:
        self.registry = registry
        self.store = store

    def required_module(self, module_id: int) -> int | None:
        """Return the module that must be completed first, or None when launch is allowed."""
        module = self.registry.get(module_id)
        if module.id == self.registry.first_id:
            return None
        previous = module.id - 1
        if self.store.get_state(previous) is ModuleState.COMPLETED:
            return None
        return previous

    def can_launch(self, module_id: int) -> bool:
        """Return whether a module may be launched right now."""
        return self.required_module(module_id) is None
