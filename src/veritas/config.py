"""veritas configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from veritas.paths import repo_file, state_file

logger = logging.getLogger(__name__)

ENV_PREFIX = "VERITAS_"


@dataclass(frozen=True)
class Settings:
    db_path: str = ""
    sleeper_base_url: str = "https://api.sleeper.app/v1"
    schedule_base_url: str = "https://api.sleeper.app/schedule/nfl"
    projections_url: str = "https://projections-api.vercel.app/api/projections"
    request_timeout_sec: int = 15
    poll_interval_sec: int = 60
    poll_lead_hours: float = 2.0
    poll_tail_hours: float = 4.0
    stats_batch_size: int = 500

    def resolved_db_path(self) -> str:
        return self.db_path or str(state_file("veritas.db"))


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_yaml_config(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a mapping, got %s", path, type(data).__name__)
        return {}
    return data


def resolve_settings(config_data: dict[str, Any], environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from file data, then apply VERITAS_* environment overrides."""
    env = os.environ if environ is None else environ
    defaults = Settings()
    known = {f.name: getattr(defaults, f.name) for f in fields(Settings)}
    values: dict[str, Any] = {}

    for key, raw in config_data.items():
        if key not in known:
            logger.warning("Unknown config key %s ignored", key)
            continue
        values[key] = _coerce(raw, known[key])

    for name, default in known.items():
        env_value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value:
            values[name] = _coerce(env_value, default)

    return replace(defaults, **values)


def load_settings(path: Path | None = None) -> Settings:
    return resolve_settings(load_yaml_config(path or repo_file("config.yaml")))
