"""CLI entrypoint for the Kubernetes learning lab trainer."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .config import TrainerConfig, configure_logging
from .environment import check_prerequisites, missing_required, open_dashboard, run_cluster_checks
from .errors import InvalidTransition, LaunchDenied, ModuleNotFound, PersistenceFailure
from .models import ModuleState
from .reporter import ACHIEVEMENT_DESCRIPTIONS, progress_bar
from .runner import LaunchOutcome
from .service import TrainerService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]

EXIT_OK = 0
EXIT_PREREQUISITES = 1
EXIT_STATE_ERROR = 3

RESET_CONFIRMATIONS = {"y", "yes"}
RULE = "═" * 64
BANNER = "\n".join(
    [
        "╔" + RULE + "╗",
        "║" + "KUBERNETES LEARNING LAB - INTERACTIVE TRAINER".center(64) + "║",
        "║" + "Master Kubernetes with Hands-On Practice".center(64) + "║",
        "╚" + RULE + "╝",
    ]
)
STATE_ICONS = {
    ModuleState.COMPLETED: "✓",
    ModuleState.IN_PROGRESS: "▶",
    ModuleState.NOT_STARTED: " ",
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Launch:
    module_id: int


@dataclass(frozen=True)
class Report:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Dashboard:
    pass


@dataclass(frozen=True)
class RunTests:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Invalid:
    text: str


Action = Launch | Report | Reset | Dashboard | RunTests | Quit | Invalid

LETTER_ACTIONS: dict[str, Action] = {
    "p": Report(),
    "r": Reset(),
    "h": Dashboard(),
    "t": RunTests(),
    "q": Quit(),
}


def parse_choice(text: str) -> Action:
    """Map one line of menu input to an action."""
    choice = text.strip().lower()
    if choice in LETTER_ACTIONS:
        return LETTER_ACTIONS[choice]
    if choice.isdecimal():
        return Launch(int(choice))
    return Invalid(text.strip())


def _service(config: TrainerConfig) -> TrainerService:
    """Create app service from configuration."""
    return TrainerService(config)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="k8slab", description="Progress-gated Kubernetes learning lab")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "report"])
    parser.add_argument("--root", help="course directory containing the module folders")
    parser.add_argument("--state-dir", help="directory holding progress.db")
    parser.add_argument("--registry", help="JSON module catalogue to use instead of the bundled one")
    parser.add_argument("--log-level", help="logging level (default: WARNING)")
    parser.add_argument("--skip-checks", action="store_true", help="do not require docker at startup")
    args = parser.parse_args(argv)

    try:
        config = TrainerConfig.from_env().with_overrides(
            course_root=args.root,
            state_dir=args.state_dir,
            registry_path=args.registry,
            log_level=args.log_level,
        )
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(config)

    if args.command == "report":
        return report_once(config)
    return play_shell(config, skip_checks=args.skip_checks)


def report_once(config: TrainerConfig, print_fn: PrintFn = print) -> int:
    """Print the progress report without entering the menu."""
    try:
        service = _service(config)
    except PersistenceFailure as exc:
        print_fn(f"Could not read progress: {exc}")
        return EXIT_STATE_ERROR
    try:
        _report_flow(service, print_fn)
    except PersistenceFailure as exc:
        logger.error("Progress report failed: %s", exc)
        print_fn(f"Could not read progress: {exc}")
        return EXIT_STATE_ERROR
    finally:
        service.close()
    return EXIT_OK


def play_shell(
    config: TrainerConfig | None = None,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    *,
    skip_checks: bool = False,
) -> int:
    """Run the persistent menu loop until the learner quits."""
    config = config or TrainerConfig.from_env()
    print_fn(BANNER)
    if not skip_checks and not _prerequisites_flow(print_fn):
        return EXIT_PREREQUISITES

    try:
        service = _service(config)
    except PersistenceFailure as exc:
        logger.error("Could not open progress store: %s", exc)
        print_fn(f"Could not open progress: {exc}")
        return EXIT_STATE_ERROR

    try:
        while True:
            _show_menu(service, print_fn)
            try:
                raw = input_fn("Enter your choice: ")
            except (EOFError, KeyboardInterrupt):
                print_fn("")
                return EXIT_OK
            action = parse_choice(raw)

            if isinstance(action, Quit):
                print_fn("Thanks for learning with Kubernetes Lab! Keep practicing!")
                return EXIT_OK
            if isinstance(action, Launch):
                _launch_flow(service, action.module_id, print_fn)
            elif isinstance(action, Report):
                _report_flow(service, print_fn)
            elif isinstance(action, Reset):
                _reset_flow(service, input_fn, print_fn)
            elif isinstance(action, Dashboard):
                _dashboard_flow(service.config, print_fn)
            elif isinstance(action, RunTests):
                _tests_flow(print_fn)
            else:
                print_fn("Invalid choice. Please try again.")
    except (PersistenceFailure, InvalidTransition) as exc:
        logger.exception("Trainer state error")
        print_fn(f"Fatal progress error: {exc}")
        return EXIT_STATE_ERROR
    finally:
        service.close()


def _prerequisites_flow(print_fn: PrintFn) -> bool:
    """Report tool availability; return False when a required tool is missing."""
    print_fn("Checking prerequisites...")
    statuses = check_prerequisites()
    for status in statuses:
        if status.found:
            print_fn(f"✓ {status.name} installed")
        elif status.required:
            print_fn(f"✗ {status.name} not found")
        else:
            print_fn(f"⚠ {status.name} not found - will install in Module 1")
    missing = missing_required(statuses)
    if missing:
        print_fn(f"Missing required tools: {', '.join(missing)}")
        print_fn("Please install the missing prerequisites and try again.")
        return False
    return True


def _show_menu(service: TrainerService, print_fn: PrintFn) -> None:
    """Print module list with status icons and the extra options."""
    print_fn("\n" + RULE)
    print_fn("LEARNING MODULES".center(64))
    print_fn(RULE)
    for row in service.list_module_states():
        suffix = "" if row.unlocked else "  (locked)"
        print_fn(f"[{STATE_ICONS[row.state]}] {row.module.id:>2}. {row.module.name}{suffix}")
    print_fn(RULE)
    print_fn(" P. Show Progress Report")
    print_fn(" R. Reset All Progress")
    print_fn(" H. Open HTML Dashboard")
    print_fn(" T. Run Tests")
    print_fn(" Q. Quit")


def _launch_flow(service: TrainerService, module_id: int, print_fn: PrintFn) -> None:
    """Run one module and report how it ended."""
    try:
        module = service.get_module(module_id)
        required = service.gate.required_module(module.id)
    except ModuleNotFound:
        print_fn(f"Invalid module number. Choose 1-{len(service.registry)}.")
        return
    if required is not None:
        print_fn(f"⚠ Please complete Module {required} first!")
        return

    print_fn(f"\nStarting Module {module.id}: {module.name}...")
    try:
        result = service.launch(module.id)
    except LaunchDenied as exc:
        print_fn(f"⚠ Please complete Module {exc.required_module_id} first!")
        return

    if result.outcome is LaunchOutcome.ABORTED:
        print_fn(f"Module {module.id} did not complete: {result.reason}")
        print_fn("Your progress is kept. Launch the module again to retry.")
    elif result.first_completion:
        print_fn(f"🎉 Module {module.id} completed!")
    else:
        print_fn(f"Module {module.id} reviewed. It stays completed.")


def _format_hours(seconds: float) -> str:
    return f"{seconds / 3600:.1f}"


def _report_flow(service: TrainerService, print_fn: PrintFn) -> None:
    """Print overall progress, time invested, and achievements."""
    summary = service.summary()
    print_fn("\n" + RULE)
    print_fn("PROGRESS REPORT".center(64))
    print_fn(RULE)
    print_fn("Overall Progress:")
    print_fn(f"{progress_bar(summary.percent)} {summary.percent}%")
    print_fn(f"Modules Completed: {summary.completed_count} / {summary.total}")
    if summary.time_spent_seconds > 0:
        print_fn(f"Time Invested: {_format_hours(summary.time_spent_seconds)} hours")
    print_fn("\nAchievements:")
    unlocked = [name for name in ACHIEVEMENT_DESCRIPTIONS if name in summary.achievements]
    if not unlocked:
        print_fn("None yet. Complete Module 1 to earn your first.")
    for name in unlocked:
        print_fn(f"✓ {name} - {ACHIEVEMENT_DESCRIPTIONS[name]}")


def _reset_flow(service: TrainerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Clear all progress after explicit confirmation."""
    print_fn("⚠ Warning: This will reset all your progress!")
    try:
        confirm = input_fn("Are you sure? (y/N): ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        confirm = ""
    if confirm not in RESET_CONFIRMATIONS:
        print_fn("Reset cancelled")
        return
    service.reset_progress()
    print_fn("Progress reset successfully")


def _dashboard_flow(config: TrainerConfig, print_fn: PrintFn) -> None:
    """Open the HTML dashboard if the course ships one."""
    path = config.dashboard
    if not path.is_file():
        print_fn(f"Dashboard file not found: {path}")
        return
    print_fn("Opening dashboard in your browser...")
    if not open_dashboard(path):
        print_fn(f"Please open {path} in your browser manually")


def _tests_flow(print_fn: PrintFn) -> None:
    """Run cluster validation checks."""
    print_fn("Running validation tests...")
    for line in run_cluster_checks():
        print_fn(line)


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
