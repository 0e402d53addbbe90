"""Error taxonomy for the trainer."""

from __future__ import annotations


class TrainerError(Exception):
    """Base class for trainer errors."""


class ModuleNotFound(TrainerError, LookupError):
    """A module id is not part of the registry."""

    def __init__(self, module_id: object) -> None:
        super().__init__(f"Unknown module: {module_id}")
        self.module_id = module_id


class InvalidTransition(TrainerError):
    """A progress record was asked to move backwards outside of reset."""

    def __init__(self, module_id: int, current: object, requested: object) -> None:
        super().__init__(f"Module {module_id} cannot move from {current} to {requested}.")
        self.module_id = module_id
        self.current = current
        self.requested = requested


class LaunchDenied(TrainerError):
    """The gate refused to launch a module."""

    def __init__(self, module_id: int, required_module_id: int) -> None:
        super().__init__(f"Module {module_id} is locked until module {required_module_id} is completed.")
        self.module_id = module_id
        self.required_module_id = required_module_id


class SubprocessAborted(TrainerError):
    """A module entry point failed, was interrupted, or could not be started."""

    def __init__(self, reason: str, returncode: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.returncode = returncode


class PersistenceFailure(TrainerError):
    """The progress database could not be read or written."""
