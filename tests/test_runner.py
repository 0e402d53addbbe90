import sys
from pathlib import Path

import pytest

from conftest import FakeExecutor

from k8slab.errors import LaunchDenied, SubprocessAborted
from k8slab.gate import GatePolicy
from k8slab.models import EntryPoint, ModuleState
from k8slab.progress import ProgressStore
from k8slab.registry import ModuleRegistry
from k8slab.runner import LaunchOutcome, ModuleRunner, SubprocessExecutor


def _runner(registry: ModuleRegistry, store: ProgressStore, executor: FakeExecutor) -> ModuleRunner:
    ticks = iter(range(0, 10_000, 30))
    return ModuleRunner(GatePolicy(registry, store), store, executor, clock=lambda: float(next(ticks)))


def test_successful_launch_completes_module(registry: ModuleRegistry, store: ProgressStore) -> None:
    executor = FakeExecutor()
    result = _runner(registry, store, executor).launch(1)
    assert result.outcome is LaunchOutcome.FINISHED
    assert result.first_completion is True
    assert result.record.state is ModuleState.COMPLETED
    assert result.record.completed_at is not None
    assert result.record.time_spent_seconds == 30.0
    assert executor.calls == [EntryPoint(directory="01-cluster-setup", script="start.sh")]


def test_denied_launch_leaves_store_unchanged(registry: ModuleRegistry, store: ProgressStore) -> None:
    executor = FakeExecutor()
    before = store.records()
    try:
        _runner(registry, store, executor).launch(2)
        raise AssertionError("Expected LaunchDenied.")
    except LaunchDenied as exc:
        assert exc.module_id == 2
        assert exc.required_module_id == 1
    assert store.records() == before
    assert executor.calls == []


def test_failed_run_stays_in_progress_then_retry_completes(registry: ModuleRegistry, store: ProgressStore) -> None:
    executor = FakeExecutor(["Exited with status 1.", None])
    runner = _runner(registry, store, executor)

    aborted = runner.launch(1)
    assert aborted.outcome is LaunchOutcome.ABORTED
    assert aborted.reason == "Exited with status 1."
    assert store.get_state(1) is ModuleState.IN_PROGRESS

    finished = runner.launch(1)
    assert finished.outcome is LaunchOutcome.FINISHED
    assert store.get_state(1) is ModuleState.COMPLETED
    assert store.get_record(1).time_spent_seconds == 60.0


def test_review_launch_keeps_completion_time(registry: ModuleRegistry, store: ProgressStore) -> None:
    runner = _runner(registry, store, FakeExecutor([None, None, "Interrupted by user."]))
    first = runner.launch(1)
    completed_at = first.record.completed_at

    review = runner.launch(1)
    assert review.outcome is LaunchOutcome.FINISHED
    assert review.first_completion is False
    assert review.record.completed_at == completed_at

    aborted_review = runner.launch(1)
    assert aborted_review.outcome is LaunchOutcome.ABORTED
    assert store.get_state(1) is ModuleState.COMPLETED
    assert store.get_record(1).completed_at == completed_at


def test_completion_unlocks_next_module(registry: ModuleRegistry, store: ProgressStore) -> None:
    runner = _runner(registry, store, FakeExecutor())
    runner.launch(1)
    result = runner.launch(2)
    assert result.outcome is LaunchOutcome.FINISHED
    assert store.completed_ids() == {1, 2}


def _course(tmp_path: Path, directory: str, body: str) -> Path:
    module_dir = tmp_path / directory
    module_dir.mkdir(parents=True)
    (module_dir / "start.py").write_text(body, encoding="utf-8")
    return tmp_path


def test_subprocess_executor_success_runs_in_module_directory(tmp_path: Path) -> None:
    root = _course(tmp_path, "01-intro", "from pathlib import Path\nPath('ran.txt').write_text('ok')\n")
    executor = SubprocessExecutor(root, interpreter=(sys.executable,))
    executor.run(EntryPoint(directory="01-intro", script="start.py"))
    assert (root / "01-intro" / "ran.txt").read_text() == "ok"


def test_subprocess_executor_nonzero_exit_aborts(tmp_path: Path) -> None:
    root = _course(tmp_path, "01-intro", "import sys\nsys.exit(3)\n")
    executor = SubprocessExecutor(root, interpreter=(sys.executable,))
    try:
        executor.run(EntryPoint(directory="01-intro", script="start.py"))
        raise AssertionError("Expected SubprocessAborted.")
    except SubprocessAborted as exc:
        assert exc.returncode == 3
        assert "status 3" in exc.reason


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_subprocess_executor_signal_termination_aborts(tmp_path: Path) -> None:
    root = _course(tmp_path, "01-intro", "import os\nimport signal\nos.kill(os.getpid(), signal.SIGTERM)\n")
    executor = SubprocessExecutor(root, interpreter=(sys.executable,))
    try:
        executor.run(EntryPoint(directory="01-intro", script="start.py"))
        raise AssertionError("Expected SubprocessAborted.")
    except SubprocessAborted as exc:
        assert exc.returncode is not None and exc.returncode < 0
        assert "signal" in exc.reason


def test_subprocess_executor_missing_script_aborts(tmp_path: Path) -> None:
    executor = SubprocessExecutor(tmp_path, interpreter=(sys.executable,))
    try:
        executor.run(EntryPoint(directory="04-services-networking", script="start.sh"))
        raise AssertionError("Expected SubprocessAborted.")
    except SubprocessAborted as exc:
        assert "Entry point not found" in exc.reason
        assert exc.returncode is None


def test_subprocess_executor_missing_interpreter_aborts(tmp_path: Path) -> None:
    root = _course(tmp_path, "01-intro", "")
    executor = SubprocessExecutor(root, interpreter=(str(tmp_path / "no-such-interpreter"),))
    try:
        executor.run(EntryPoint(directory="01-intro", script="start.py"))
        raise AssertionError("Expected SubprocessAborted.")
    except SubprocessAborted as exc:
        assert "Could not start" in exc.reason


def test_subprocess_executor_keyboard_interrupt_aborts(tmp_path: Path, monkeypatch) -> None:
    root = _course(tmp_path, "01-intro", "")

    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr("k8slab.runner.subprocess.run", interrupted)
    executor = SubprocessExecutor(root, interpreter=(sys.executable,))
    try:
        executor.run(EntryPoint(directory="01-intro", script="start.py"))
        raise AssertionError("Expected SubprocessAborted.")
    except SubprocessAborted as exc:
        assert exc.reason == "Interrupted by user."


def test_runner_with_real_failing_script_records_in_progress(tmp_path: Path, registry: ModuleRegistry) -> None:
    root = tmp_path / "course"
    (root / "01-cluster-setup").mkdir(parents=True)
    (root / "01-cluster-setup" / "start.sh").write_text("raise SystemExit(1)\n", encoding="utf-8")
    store = ProgressStore(tmp_path / "progress.db", module_ids=registry.ids())
    runner = ModuleRunner(GatePolicy(registry, store), store, SubprocessExecutor(root, interpreter=(sys.executable,)))

    result = runner.launch(1)
    assert result.outcome is LaunchOutcome.ABORTED
    assert store.get_state(1) is ModuleState.IN_PROGRESS
    store.close()
