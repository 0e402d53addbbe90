from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from k8slab.errors import SubprocessAborted  # noqa: E402
from k8slab.models import EntryPoint  # noqa: E402
from k8slab.progress import ProgressStore  # noqa: E402
from k8slab.registry import ModuleRegistry, load_registry  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Temporary files live under ``.tmp_pytest/`` in the project directory
    instead of the system temp location.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class FakeExecutor:
    """Executor double that replays scripted outcomes."""

    def __init__(self, outcomes: list[str | None] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[EntryPoint] = []

    def run(self, entry_point: EntryPoint) -> None:
        self.calls.append(entry_point)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise SubprocessAborted(outcome)


@pytest.fixture
def registry() -> ModuleRegistry:
    return load_registry()


@pytest.fixture
def store(registry: ModuleRegistry) -> Iterator[ProgressStore]:
    progress = ProgressStore(":memory:", module_ids=registry.ids())
    try:
        yield progress
    finally:
        progress.close()
