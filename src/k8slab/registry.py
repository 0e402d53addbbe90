"""Load the ordered module catalogue from bundled JSON resources."""

from __future__ import annotations

import json
from collections.abc import Iterator
from importlib import resources
from pathlib import Path
from typing import Any

from .errors import ModuleNotFound
from .models import EntryPoint, ModuleDescriptor

CONTENT_PACKAGE = "k8slab.content"
REGISTRY_RESOURCE = "modules.json"


class ModuleRegistry:
    """Immutable, id-ordered catalogue of learning modules."""

    def __init__(self, modules: list[ModuleDescriptor]) -> None:
        """Validate and index modules."""
        ordered = sorted(modules, key=lambda item: item.id)
        _validate_modules(ordered)
        self._modules = tuple(ordered)
        self._by_id = {module.id: module for module in ordered}

    def list(self) -> tuple[ModuleDescriptor, ...]:
        """Return modules in ascending id order."""
        return self._modules

    def get(self, module_id: int) -> ModuleDescriptor:
        """Return one module or raise ModuleNotFound."""
        try:
            return self._by_id[module_id]
        except KeyError:
            raise ModuleNotFound(module_id) from None

    def ids(self) -> tuple[int, ...]:
        return tuple(module.id for module in self._modules)

    @property
    def first_id(self) -> int:
        return self._modules[0].id

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._by_id

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)


def _parse_id(value: object) -> int | None:
    """Accept integer ids or decimal digit strings; reject bools, floats, and the rest."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def _module_from_dict(raw: dict[str, Any]) -> ModuleDescriptor:
    """Build a module descriptor from raw JSON content."""
    if not isinstance(raw, dict):
        raise ValueError(f"Module entry must be an object: {raw!r}")
    module_id = _parse_id(raw.get("id"))
    if module_id is None:
        raise ValueError(f"Module entry has no valid id: {raw!r}")
    name = str(raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"Module {module_id} has no name.")
    directory = str(raw.get("directory", "")).strip()
    if not directory:
        raise ValueError(f"Module {module_id} has no directory.")
    script = str(raw.get("script", "start.sh")).strip() or "start.sh"
    return ModuleDescriptor(id=module_id, name=name, entry_point=EntryPoint(directory=directory, script=script))


def _registry_from_payload(raw: object) -> ModuleRegistry:
    if not isinstance(raw, dict) or not isinstance(raw.get("modules"), list):
        raise ValueError("Registry root must be an object with a 'modules' list.")
    return ModuleRegistry([_module_from_dict(item) for item in raw["modules"]])


def load_registry() -> ModuleRegistry:
    """Load the bundled module catalogue."""
    entry = resources.files(CONTENT_PACKAGE).joinpath(REGISTRY_RESOURCE)
    return _registry_from_payload(json.loads(entry.read_text(encoding="utf-8-sig")))


def load_registry_from_file(path: Path | str) -> ModuleRegistry:
    """Load a module catalogue from a JSON file for custom courses and tests."""
    raw = json.loads(Path(path).read_text(encoding="utf-8-sig"))
    return _registry_from_payload(raw)


def _validate_modules(modules: list[ModuleDescriptor]) -> None:
    """Validate ids are unique and form a contiguous 1..N sequence."""
    if not modules:
        raise ValueError("Registry must contain at least one module.")
    seen: set[int] = set()
    for module in modules:
        if module.id in seen:
            raise ValueError(f"Duplicate module id: {module.id}")
        seen.add(module.id)
    expected = list(range(1, len(modules) + 1))
    actual = [module.id for module in modules]
    if actual != expected:
        raise ValueError(f"Module ids must run from 1 to {len(modules)} without gaps, got {actual}.")
