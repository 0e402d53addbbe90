"""Launch external module scripts and record progress around them."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from .errors import LaunchDenied, SubprocessAborted
from .gate import GatePolicy
from .models import EntryPoint, ModuleDescriptor, ModuleState, ProgressRecord
from .progress import ProgressStore

logger = logging.getLogger(__name__)


class LaunchOutcome(Enum):
    """Terminal outcome of a launch that passed the gate."""

    FINISHED = "finished"
    ABORTED = "aborted"


@dataclass(frozen=True)
class LaunchResult:
    """Result of one module launch."""

    module: ModuleDescriptor
    outcome: LaunchOutcome
    record: ProgressRecord
    reason: str | None = None
    first_completion: bool = False


class Executor(Protocol):
    """Runs a module entry point, raising SubprocessAborted on any failure."""

    def run(self, entry_point: EntryPoint) -> None: ...


class SubprocessExecutor:
    """Run `<interpreter> <script>` inside the module directory, attached to the terminal."""

    def __init__(self, course_root: Path | str, interpreter: Sequence[str] = ("bash",)) -> None:
        self.course_root = Path(course_root)
        self.interpreter = tuple(interpreter)

    def resolve(self, entry_point: EntryPoint) -> tuple[Path, Path]:
        """Return (working directory, script path) for an entry point."""
        directory = self.course_root / entry_point.directory
        return directory, directory / entry_point.script

    def run(self, entry_point: EntryPoint) -> None:
        """Run one entry point synchronously with no timeout."""
        directory, script = self.resolve(entry_point)
        if not script.is_file():
            raise SubprocessAborted(f"Entry point not found: {script}")
        command = [*self.interpreter, entry_point.script]
        logger.info("Running %s in %s", " ".join(command), directory)
        try:
            completed = subprocess.run(command, cwd=directory, check=False)
        except KeyboardInterrupt:
            raise SubprocessAborted("Interrupted by user.") from None
        except OSError as exc:
            raise SubprocessAborted(f"Could not start {script}: {exc}") from exc
        if completed.returncode < 0:
            raise SubprocessAborted(f"Terminated by signal {-completed.returncode}.", completed.returncode)
        if completed.returncode != 0:
            raise SubprocessAborted(f"Exited with status {completed.returncode}.", completed.returncode)


class ModuleRunner:
    """Gate, run, and record one module launch."""

    def __init__(
        self,
        gate: GatePolicy,
        store: ProgressStore,
        executor: Executor,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.gate = gate
        self.store = store
        self.executor = executor
        self._clock = clock or time.monotonic

    def launch(self, module_id: int) -> LaunchResult:
        """Launch a module.

        Raises LaunchDenied when the gate refuses; the store is untouched then.
        A failing, interrupted, or missing entry point yields an ABORTED result and
        leaves the state where it was. Launching a completed module again is a
        review run and never changes its state or completion time.
        """
        module = self.gate.registry.get(module_id)
        required = self.gate.required_module(module.id)
        if required is not None:
            logger.info("Launch of module %d denied; module %d not completed", module.id, required)
            raise LaunchDenied(module.id, required)

        if self.store.get_state(module.id) is ModuleState.NOT_STARTED:
            self.store.set_state(module.id, ModuleState.IN_PROGRESS)

        started = self._clock()
        try:
            self.executor.run(module.entry_point)
        except SubprocessAborted as exc:
            self.store.add_time_spent(module.id, self._clock() - started)
            logger.warning("Module %d aborted: %s", module.id, exc.reason)
            return LaunchResult(
                module=module,
                outcome=LaunchOutcome.ABORTED,
                record=self.store.get_record(module.id),
                reason=exc.reason,
            )
        self.store.add_time_spent(module.id, self._clock() - started)

        first_completion = self.store.get_state(module.id) is not ModuleState.COMPLETED
        if first_completion:
            self.store.set_state(module.id, ModuleState.COMPLETED)
        return LaunchResult(
            module=module,
            outcome=LaunchOutcome.FINISHED,
            record=self.store.get_record(module.id),
            first_completion=first_completion,
        )
