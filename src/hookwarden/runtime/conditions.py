"""Condition mini-language: ``file_exists('x') && env_set('Y') && ...``.

Unlike matcher expressions, conditions are lenient: a part that does not
parse, or names an unknown function, never fails the condition.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from collections.abc import Callable
from pathlib import Path

from hookwarden.exceptions import ConditionError

logger = logging.getLogger(__name__)

ConditionCallable = Callable[[str, Path], bool]

_CALL_RE = re.compile(r"""(\w+)\(['"]([^'"]+)['"]\)""")
_REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def _normalize_dist_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def _file_exists(arg: str, cwd: Path) -> bool:
    return (cwd / arg).exists()


def _env_set(arg: str, cwd: Path) -> bool:
    return bool(os.environ.get(arg))


def _package_json_deps(cwd: Path) -> set[str]:
    path = cwd / "package.json"
    if not path.exists():
        return set()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return set()
    names: set[str] = set()
    for key in ("dependencies", "devDependencies"):
        section = payload.get(key) if isinstance(payload, dict) else None
        if isinstance(section, dict):
            names.update(section)
    return names


def _pyproject_deps(cwd: Path) -> set[str]:
    path = cwd / "pyproject.toml"
    if not path.exists():
        return set()
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return set()
    project = payload.get("project", {})
    requirements = list(project.get("dependencies", []))
    for extra in project.get("optional-dependencies", {}).values():
        requirements.extend(extra)
    return _requirement_names(requirements)


def _requirements_txt_deps(cwd: Path) -> set[str]:
    path = cwd / "requirements.txt"
    if not path.exists():
        return set()
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return set()
    return _requirement_names(line for line in lines if not line.lstrip().startswith(("#", "-")))


def _requirement_names(requirements) -> set[str]:
    names: set[str] = set()
    for requirement in requirements:
        found = _REQUIREMENT_NAME_RE.match(requirement)
        if found:
            names.add(_normalize_dist_name(found.group(1)))
    return names


def _has_dependency(arg: str, cwd: Path) -> bool:
    if arg in _package_json_deps(cwd):
        return True
    python_deps = _pyproject_deps(cwd) | _requirements_txt_deps(cwd)
    return _normalize_dist_name(arg) in python_deps


CONDITION_REGISTRY: dict[str, ConditionCallable] = {
    "file_exists": _file_exists,
    "has_dependency": _has_dependency,
    "env_set": _env_set,
}


def list_conditions() -> list[str]:
    return sorted(CONDITION_REGISTRY.keys())


def get_condition(name: str) -> ConditionCallable:
    try:
        return CONDITION_REGISTRY[name]
    except KeyError as exc:
        raise KeyError(f"Unknown condition function: {name}") from exc


def parse_condition(condition: str) -> list[tuple[str, str]]:
    """Strict parse used for configuration linting.

    Raises :class:`ConditionError` for any part that is not a single
    ``name('arg')`` call.
    """
    calls: list[tuple[str, str]] = []
    for part in (piece.strip() for piece in condition.split("&&")):
        found = _CALL_RE.fullmatch(part)
        if not found:
            raise ConditionError(f"Unparsable condition part: {part!r}")
        calls.append((found.group(1), found.group(2)))
    return calls


def evaluate_condition(condition: str, *, cwd: str | Path | None = None) -> bool:
    """Evaluate a conjunction of registered predicate calls.

    Parts are separated by ``&&``. A part without a recognisable
    ``name('arg')`` call is ignored, and so is a call to an unregistered
    function.
    """
    base = Path(cwd) if cwd else Path.cwd()
    for part in (piece.strip() for piece in condition.split("&&")):
        found = _CALL_RE.search(part)
        if not found:
            if part:
                logger.debug("Ignoring unparsable condition part: %r", part)
            continue
        name, arg = found.groups()
        check = CONDITION_REGISTRY.get(name)
        if check is None:
            logger.debug("Unknown condition function %s treated as true", name)
            continue
        if not check(arg, base):
            return False
    return True
