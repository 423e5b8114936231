"""Centralized settings with environment + runtime config overlay.
Provides typed accessors so collector / pipeline tuning constants live in one place.
"""
from __future__ import annotations
from pathlib import Path
import os, yaml
from dataclasses import dataclass

_RUNTIME_CACHE: dict | None = None

CONFIG_DIR = Path(__file__).resolve().parent.parent / 'config'
DATA_DIR = Path(__file__).resolve().parent.parent / 'data'

def _load_runtime() -> dict:
    global _RUNTIME_CACHE
    if _RUNTIME_CACHE is None:
        cfg_file = CONFIG_DIR / 'runtime.yml'
        if cfg_file.exists():
            try:
                _RUNTIME_CACHE = yaml.safe_load(cfg_file.read_text(encoding='utf-8')) or {}
            except yaml.YAMLError:
                _RUNTIME_CACHE = {}
        else:
            _RUNTIME_CACHE = {}
    return _RUNTIME_CACHE

def reset_runtime_cache():
    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is not None:
        try:
            return float(v)
        except ValueError:
            return default
    return float(_load_runtime().get(name.lower(), default))

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is not None:
        try:
            return int(v)
        except ValueError:
            return default
    return int(_load_runtime().get(name.lower(), default))

def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        v = _load_runtime().get(name.lower())
        if v is None:
            return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ('1', 'true', 'yes', 'on')

def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is not None:
        return v
    return str(_load_runtime().get(name.lower(), default))

SCHEMA_VERSION = 1  # increment when catalog schema changes require migration logic

@dataclass(frozen=True)
class Settings:
    settle_ms: int
    max_scroll_attempts: int
    stagnation_limit: int
    strict_collect: bool
    min_increment_px: int
    nav_timeout_ms: int
    load_wait_ms: int
    stale_chunk_size: int
    max_workers: int
    headless: bool
    db_path: Path
    run_history_path: Path

def load_settings() -> Settings:
    return Settings(
        settle_ms=_env_int('HARVESTER_SETTLE_MS', 500),
        max_scroll_attempts=_env_int('HARVESTER_MAX_SCROLL_ATTEMPTS', 200),
        stagnation_limit=_env_int('HARVESTER_STAGNATION_LIMIT', 5),
        strict_collect=_env_bool('HARVESTER_STRICT_COLLECT', True),
        min_increment_px=_env_int('HARVESTER_MIN_INCREMENT_PX', 100),
        nav_timeout_ms=_env_int('HARVESTER_NAV_TIMEOUT_MS', 30000),
        load_wait_ms=_env_int('HARVESTER_LOAD_WAIT_MS', 2000),
        stale_chunk_size=_env_int('HARVESTER_STALE_CHUNK', 200),
        max_workers=_env_int('HARVESTER_MAX_WORKERS', 4),
        headless=_env_bool('HARVESTER_HEADLESS', True),
        db_path=Path(_env_str('HARVESTER_DB_PATH', str(DATA_DIR / 'catalog.sqlite'))),
        run_history_path=Path(_env_str('HARVESTER_RUN_HISTORY', str(DATA_DIR / 'run_history.jsonl'))),
    )

SETTINGS = load_settings()
