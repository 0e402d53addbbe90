"""SQLite persistence for per-module learner progress."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from .errors import InvalidTransition, ModuleNotFound, PersistenceFailure
from .models import ModuleState, ProgressRecord

SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)


class ProgressStore:
    """Durable, forward-only progress records keyed by module id.

    Every mutating call commits before it returns, so a store reopened after a
    crash reflects exactly the last completed write. Writes are serialized with
    a lock, which keeps the read-check-write in ``set_state`` atomic when several
    front-ends share one store.
    """

    def __init__(self, db_path: Path | str, module_ids: Iterable[int] | None = None) -> None:
        """Open (or create) the database and apply migrations."""
        self._module_ids = tuple(sorted(module_ids)) if module_ids is not None else None
        self._lock = threading.RLock()
        try:
            if isinstance(db_path, Path):
                db_path.parent.mkdir(parents=True, exist_ok=True)
                target = str(db_path)
            else:
                target = db_path
            self._conn = sqlite3.connect(target, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA synchronous = FULL")
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceFailure(f"Could not open progress database {db_path}: {exc}") from exc
        try:
            self._init_db()
        except PersistenceFailure:
            self._conn.close()
            raise

    def _init_db(self) -> None:
        with self._guard("migrate"):
            self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise PersistenceFailure(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, _now()),
                )
            logger.info("Applied progress schema migration %d", version)

    def _migrate_to_v1(self) -> None:
        """Create the module progress table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS module_progress (
                    module_id INTEGER PRIMARY KEY,
                    state TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT,
                    time_spent_seconds REAL NOT NULL DEFAULT 0
                )
                """)

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate database errors into PersistenceFailure."""
        try:
            yield
        except sqlite3.Error as exc:
            logger.error("Progress database %s failed: %s", action, exc)
            raise PersistenceFailure(f"Progress database {action} failed: {exc}") from exc

    def _check_module(self, module_id: int) -> None:
        if self._module_ids is not None and module_id not in self._module_ids:
            raise ModuleNotFound(module_id)

    def get_record(self, module_id: int) -> ProgressRecord:
        """Return the record for a module, defaulting to NotStarted."""
        self._check_module(module_id)
        with self._guard("read"):
            row = self._conn.execute(
                """
                SELECT module_id, state, started_at, completed_at, time_spent_seconds
                FROM module_progress
                WHERE module_id = ?
                """,
                (module_id,),
            ).fetchone()
        if row is None:
            return ProgressRecord(module_id=module_id)
        return _record_from_row(row)

    def get_state(self, module_id: int) -> ModuleState:
        """Return the current state for a module."""
        return self.get_record(module_id).state

    def set_state(self, module_id: int, state: ModuleState) -> ProgressRecord:
        """Move a module forward to ``state``.

        Re-setting the current state is a no-op and keeps existing timestamps.
        Moving backwards raises InvalidTransition; only ``reset_all`` regresses.
        """
        self._check_module(module_id)
        with self._lock:
            current = self.get_record(module_id)
            if state.rank < current.state.rank:
                raise InvalidTransition(module_id, current.state, state)
            if state is current.state:
                return current

            now = _now()
            started_at = current.started_at or now
            completed_at = now if state is ModuleState.COMPLETED else None
            with self._guard("write"), self._conn:
                self._conn.execute(
                    """
                    INSERT INTO module_progress (module_id, state, started_at, completed_at, time_spent_seconds)
                    VALUES (?, ?, ?, ?, 0)
                    ON CONFLICT(module_id) DO UPDATE SET
                        state = excluded.state,
                        started_at = excluded.started_at,
                        completed_at = excluded.completed_at
                    """,
                    (module_id, state.value, started_at, completed_at),
                )
            logger.info("Module %d: %s -> %s", module_id, current.state.value, state.value)
            return ProgressRecord(
                module_id=module_id,
                state=state,
                started_at=started_at,
                completed_at=completed_at,
                time_spent_seconds=current.time_spent_seconds,
            )

    def add_time_spent(self, module_id: int, seconds: float) -> None:
        """Accumulate time spent inside a module's script."""
        self._check_module(module_id)
        if seconds <= 0:
            return
        with self._lock, self._guard("write"), self._conn:
            cursor = self._conn.execute(
                "UPDATE module_progress SET time_spent_seconds = time_spent_seconds + ? WHERE module_id = ?",
                (seconds, module_id),
            )
            if cursor.rowcount == 0:
                logger.debug("No progress row for module %d; time not recorded", module_id)

    def records(self) -> list[ProgressRecord]:
        """Return one record per known module, ordered by module id."""
        with self._guard("read"):
            rows = self._conn.execute(
                """
                SELECT module_id, state, started_at, completed_at, time_spent_seconds
                FROM module_progress
                ORDER BY module_id
                """
            ).fetchall()
        stored = {int(row["module_id"]): _record_from_row(row) for row in rows}
        if self._module_ids is None:
            return [stored[module_id] for module_id in sorted(stored)]
        return [stored.get(module_id, ProgressRecord(module_id=module_id)) for module_id in self._module_ids]

    def completed_ids(self) -> set[int]:
        """Return ids of completed modules."""
        return {record.module_id for record in self.records() if record.state is ModuleState.COMPLETED}

    def reset_all(self) -> None:
        """Delete every progress record in one transaction."""
        with self._lock, self._guard("reset"), self._conn:
            self._conn.execute("DELETE FROM module_progress")
        logger.warning("All module progress was reset")

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _record_from_row(row: sqlite3.Row) -> ProgressRecord:
    module_id = int(row["module_id"])
    try:
        state = ModuleState(row["state"])
    except ValueError:
        raise PersistenceFailure(f"Module {module_id} has unreadable state {row['state']!r}.") from None
    return ProgressRecord(
        module_id=module_id,
        state=state,
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        time_spent_seconds=float(row["time_spent_seconds"] or 0.0),
    )


def _now() -> str:
    return datetime.now(UTC).isoformat()
