"""Configuration loading and validation for stockmeta."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple

import yaml


PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_PATH = CONFIG_DIR / "config.yaml"
ENV_CONFIG_PATH = "STOCKMETA_CONFIG"


DEFAULT_CONFIG: Dict[str, Any] = {
    "generation": {
        "provider": "gemini",
        "base_url": "https://generativelanguage.googleapis.com",
        "model": "gemini-2.5-flash",
        "api_key_env": "GEMINI_API_KEY",
        "timeout": 45,
        "temperature": 0.3,
    },
    "scheduler": {
        "batch_size": 5,
        "max_concurrent_batches": 4,
    },
    "export": {
        "directory": ".",
        "filename": "adobe_stock_metadata.csv",
    },
    "logging": {
        "console_level": "INFO",
        "file_level": "DEBUG",
        "json_logs": False,
        "color": True,
        "log_dir": None,
    },
}


@dataclass(frozen=True)
class ConfigLoadResult:
    """Container for the merged configuration."""

    config: Dict[str, Any]
    sources: Tuple[str, ...]


def _ensure_default_config(path: Path) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with tmp.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(DEFAULT_CONFIG, handle, sort_keys=True)
    tmp.replace(path)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, MutableMapping):
        raise ValueError(f"Configuration file {path} must contain a mapping at the root")
    return dict(data)


def _deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MutableMapping)
            and isinstance(value, MutableMapping)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _collect_sources(config_path: str | Path | None) -> Iterable[Tuple[Path, bool]]:
    yield CONFIG_PATH, False
    env_path = os.getenv(ENV_CONFIG_PATH)
    if env_path:
        yield Path(env_path), False
    if config_path:
        yield Path(config_path), True


def _positive(section: Mapping[str, Any], key: str, label: str) -> None:
    value = section.get(key)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a positive number") from None
    if number <= 0:
        raise ValueError(f"{label} must be a positive number")


def _validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    generation = config.get("generation")
    if not isinstance(generation, Mapping):
        raise ValueError("Configuration must define a 'generation' section")
    if not str(generation.get("model") or "").strip():
        raise ValueError("generation.model must name a model")
    _positive(generation, "timeout", "generation.timeout")
    scheduler = config.get("scheduler", {})
    _positive(scheduler, "batch_size", "scheduler.batch_size")
    _positive(scheduler, "max_concurrent_batches", "scheduler.max_concurrent_batches")
    return config


def load_config(
    config_path: str | Path | None = None,
    *,
    include_sources: bool = False,
    create_default: bool = True,
) -> ConfigLoadResult | Dict[str, Any]:
    """Load and validate configuration settings.

    ``config/config.yaml`` is written with the defaults on first use. An
    explicit ``config_path`` is applied last and must exist.
    """

    config: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))
    sources: list[str] = []

    if create_default:
        _ensure_default_config(CONFIG_PATH)

    for path, required in _collect_sources(config_path):
        if not path.exists():
            if required:
                raise FileNotFoundError(f"Configuration file not found: {path}")
            continue
        data = _load_yaml(path)
        config = _deep_merge(config, data)
        sources.append(str(path.resolve()))

    config = json.loads(json.dumps(config))  # deep copy via JSON for immutability
    config = _validate_config(config)

    result = ConfigLoadResult(config=config, sources=tuple(sources))
    if include_sources:
        return result
    return result.config


__all__ = ["DEFAULT_CONFIG", "ConfigLoadResult", "load_config"]
