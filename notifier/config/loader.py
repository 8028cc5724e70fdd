"""YAML config loader with default injection and dotted get/set."""

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from notifier.config.defaults import DEFAULT_OPENING_HOURS
from notifier.config.schema import NotifierConfig


def load_config(path: str | Path) -> NotifierConfig:
    """Load and validate config from a YAML file.

    A missing file behaves like an empty one. If no opening hours are given,
    injects DEFAULT_OPENING_HOURS.
    """
    path = Path(path)
    raw: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    availability = raw.setdefault("availability", {}) or {}
    raw["availability"] = availability
    if not availability.get("hours"):
        availability["hours"] = [h.model_dump() for h in DEFAULT_OPENING_HOURS]

    return NotifierConfig(**raw)


def config_hash(config: NotifierConfig) -> str:
    """Compute a deterministic SHA256 hash of the config."""
    data = config.model_dump_json(indent=None)
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def get_config_value(config: NotifierConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'polling.interval_seconds'."""
    parts = dotted_key.split(".")
    obj: Any = config
    for part in parts:
        if isinstance(obj, list):
            obj = obj[int(part)]
        elif hasattr(obj, part):
            obj = getattr(obj, part)
        elif isinstance(obj, dict):
            obj = obj[part]
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj


def set_config_value(config: NotifierConfig, dotted_key: str, value: Any) -> NotifierConfig:
    """Set a config value by dotted key path and re-validate.

    Returns a new NotifierConfig instance.
    """
    data = json.loads(config.model_dump_json())
    parts = dotted_key.split(".")
    target = data
    for part in parts[:-1]:
        target = target[int(part)] if isinstance(target, list) else target[part]
    if parts[-1] not in target:
        raise KeyError(f"Config key not found: {dotted_key}")
    old_value = target.get(parts[-1])
    if isinstance(old_value, bool) and isinstance(value, str):
        value = value.strip().lower() in ("true", "1", "yes", "on")
    elif isinstance(old_value, int) and isinstance(value, str):
        value = int(value)
    elif isinstance(old_value, float) and isinstance(value, str):
        value = float(value)
    target[parts[-1]] = value
    return NotifierConfig(**data)


def save_config(config: NotifierConfig, path: str | Path) -> None:
    """Write the config back to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(json.loads(config.model_dump_json()), f, sort_keys=False)
