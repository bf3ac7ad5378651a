from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from storedemo.config.object_store_config import DEFAULT_CHUNK_SIZE
from storedemo.errors import ConfigError

DEFAULT_MAX_CONCURRENCY = 16


def env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got: {raw!r}", {"field": name}) from exc


@dataclass(frozen=True)
class RunSettings:
    # 0 means no bound on in-flight fetches
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_level: str = "WARNING"
    log_json: bool = False

    def __post_init__(self):
        if self.max_concurrency < 0:
            raise ConfigError(f"max_concurrency must be >= 0, got: {self.max_concurrency}", {"field": "max_concurrency"})
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be > 0, got: {self.chunk_size}", {"field": "chunk_size"})

    @property
    def concurrency_limit(self) -> int | None:
        return self.max_concurrency or None


def load_run_settings(env: Mapping[str, str] | None = None) -> RunSettings:
    env = os.environ if env is None else env
    return RunSettings(
        max_concurrency=_get_int(env, "STOREDEMO_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
        chunk_size=_get_int(env, "STOREDEMO_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        log_level=env.get("LOG_LEVEL") or "WARNING",
        log_json=env_flag(env, "LOG_JSON"),
    )
