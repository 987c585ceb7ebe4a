from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from hookwarden.config.models import HooksConfig
from hookwarden.exceptions import ConfigurationError

CONFIG_ENV_VAR = "HOOKWARDEN_HOOKS_CONFIG"

_HOME = Path(os.getenv("HOME") or Path.home())

DEFAULT_PATHS = {
    "config": _HOME / ".hookwarden" / "hooks" / "hooks.json",
    "handlers": _HOME / ".hookwarden" / "hooks" / "handlers",
    "logs": _HOME / ".hookwarden" / "logs",
}


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Explicit argument, then ``HOOKWARDEN_HOOKS_CONFIG``, then the default."""
    if config_path:
        return Path(config_path)
    from_env = os.getenv(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    return DEFAULT_PATHS["config"]


def _failing_hooks(payload: dict[str, Any], exc: ValidationError) -> list[str]:
    """``event/id`` labels for the hook definitions named in validation errors."""
    labels: list[str] = []
    for error in exc.errors():
        loc = error["loc"]
        if len(loc) < 3 or loc[0] != "hooks" or not isinstance(loc[2], int):
            continue
        event, index = loc[1], loc[2]
        try:
            definition = payload["hooks"][event][index]
        except (KeyError, IndexError, TypeError):
            continue
        hook_id = definition.get("id") if isinstance(definition, dict) else None
        label = f"{event}/{hook_id}" if hook_id else f"{event}/#{index}"
        if label not in labels:
            labels.append(label)
    return labels


def load_hooks_config(config_path: str | Path) -> HooksConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Hooks config not found: {path}")
    try:
        with open(path, encoding="utf-8") as fp:
            payload = json.load(fp)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read hooks config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Hooks config must be a JSON object: {path}")
    try:
        return HooksConfig.model_validate(payload)
    except ValidationError as exc:
        failing = _failing_hooks(payload, exc)
        if failing:
            raise ConfigurationError(
                f"Invalid hooks config {path} (failing hooks: {', '.join(failing)}): {exc}"
            ) from exc
        raise ConfigurationError(f"Invalid hooks config {path}: {exc}") from exc
