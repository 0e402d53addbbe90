"""Runtime configuration from environment variables and CLI overrides."""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

ENV_PREFIX = "K8SLAB_"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_INTERPRETER = ("bash",)
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PROGRESS_DB_NAME = "progress.db"


@dataclass(frozen=True)
class TrainerConfig:
    """Where the course lives, where progress is stored, and how scripts run."""

    course_root: Path
    state_dir: Path
    registry_path: Path | None = None
    interpreter: tuple[str, ...] = DEFAULT_INTERPRETER
    dashboard_path: Path | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def db_path(self) -> Path:
        return self.state_dir / PROGRESS_DB_NAME

    @property
    def dashboard(self) -> Path:
        return self.dashboard_path or (self.course_root / "trainer" / "index.html")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TrainerConfig:
        """Build configuration from K8SLAB_* variables with defaults."""
        env = os.environ if environ is None else environ
        root = Path(env.get(f"{ENV_PREFIX}ROOT") or Path.cwd())
        state_dir = Path(env[f"{ENV_PREFIX}STATE_DIR"]) if env.get(f"{ENV_PREFIX}STATE_DIR") else root / ".progress"
        registry = env.get(f"{ENV_PREFIX}REGISTRY")
        dashboard = env.get(f"{ENV_PREFIX}DASHBOARD")
        interpreter_text = env.get(f"{ENV_PREFIX}INTERPRETER", "").strip()
        interpreter = tuple(shlex.split(interpreter_text)) if interpreter_text else DEFAULT_INTERPRETER
        return cls(
            course_root=root,
            state_dir=state_dir,
            registry_path=Path(registry) if registry else None,
            interpreter=interpreter,
            dashboard_path=Path(dashboard) if dashboard else None,
            log_level=normalize_log_level(env.get(f"{ENV_PREFIX}LOG_LEVEL", DEFAULT_LOG_LEVEL)),
        )

    def with_overrides(
        self,
        *,
        course_root: Path | str | None = None,
        state_dir: Path | str | None = None,
        registry_path: Path | str | None = None,
        log_level: str | None = None,
    ) -> TrainerConfig:
        """Return a copy with CLI-provided values applied."""
        updated = self
        if course_root is not None:
            root = Path(course_root)
            # A state dir derived from the old root follows the new one.
            state = root / ".progress" if self.state_dir == self.course_root / ".progress" else self.state_dir
            updated = replace(updated, course_root=root, state_dir=state)
        if state_dir is not None:
            updated = replace(updated, state_dir=Path(state_dir))
        if registry_path is not None:
            updated = replace(updated, registry_path=Path(registry_path))
        if log_level is not None:
            updated = replace(updated, log_level=normalize_log_level(log_level))
        return updated


def normalize_log_level(value: str) -> str:
    """Validate a logging level name."""
    level = value.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def configure_logging(config: TrainerConfig) -> None:
    """Configure root logging to stderr."""
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
