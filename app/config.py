"""
app/config.py

Application-level configuration helpers.

Every setting has a safe default so the query core runs without any
environment configuration; deployments tune bounds through env vars or
per-invocation overrides (``dataclasses.replace`` on the returned objects).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.env import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class IterationConfig:
    """
    Bounds for one iterative question session.
    """

    max_iterations: int = 20
    max_session_time_ms: int = 30_000
    enable_loop_detection: bool = True
    min_validation_confidence: float = 0.7
    enable_request_logging: bool = True
    enable_data_validation: bool = True
    min_record_threshold: int = 10
    allow_empty_results: bool = True


@dataclass(frozen=True)
class ValidationSettings:
    """
    Thresholds used by the heuristic data validator.
    """

    min_record_threshold: int = 10
    suspicious_pattern_threshold: float = 0.6


@dataclass(frozen=True)
class SessionStoreSettings:
    """
    Lifetime settings for in-memory session registries.
    """

    ttl_seconds: float = 30 * 60.0
    cleanup_interval_seconds: float = 60.0
    retention_seconds: float = 60 * 60.0


@dataclass(frozen=True)
class MatchingSettings:
    """
    Defaults for text matching.
    """

    remove_diacritics: bool = False


@lru_cache(maxsize=1)
def get_iteration_config() -> IterationConfig:
    """
    Return cached iteration bounds from environment variables.
    """

    return IterationConfig(
        max_iterations=max(1, _get_int_env("ITERATION_MAX_ROUNDS", 20)),
        max_session_time_ms=max(1, _get_int_env("ITERATION_MAX_SESSION_TIME_MS", 30_000)),
        enable_loop_detection=_get_bool_env("ITERATION_LOOP_DETECTION", True),
        min_validation_confidence=_clamp_unit(_get_float_env("ITERATION_MIN_CONFIDENCE", 0.7)),
        enable_request_logging=_get_bool_env("ITERATION_REQUEST_LOGGING", True),
        enable_data_validation=_get_bool_env("ITERATION_DATA_VALIDATION", True),
        min_record_threshold=max(0, _get_int_env("ITERATION_MIN_RECORD_THRESHOLD", 10)),
        allow_empty_results=_get_bool_env("ITERATION_ALLOW_EMPTY_RESULTS", True),
    )


@lru_cache(maxsize=1)
def get_validation_settings() -> ValidationSettings:
    """
    Return cached validator thresholds from environment variables.
    """

    return ValidationSettings(
        min_record_threshold=max(0, _get_int_env("VALIDATION_MIN_RECORDS", 10)),
        suspicious_pattern_threshold=_clamp_unit(
            _get_float_env("VALIDATION_SUSPICIOUS_PATTERN_THRESHOLD", 0.6)
        ),
    )


@lru_cache(maxsize=1)
def get_session_store_settings() -> SessionStoreSettings:
    """
    Return cached session registry settings from environment variables.
    """

    return SessionStoreSettings(
        ttl_seconds=max(1.0, _get_float_env("SESSION_TTL_SECONDS", 30 * 60.0)),
        cleanup_interval_seconds=max(1.0, _get_float_env("SESSION_CLEANUP_INTERVAL_SECONDS", 60.0)),
        retention_seconds=max(0.0, _get_float_env("SESSION_RETENTION_SECONDS", 60 * 60.0)),
    )


@lru_cache(maxsize=1)
def get_matching_settings() -> MatchingSettings:
    """
    Return cached text matching defaults from environment variables.
    """

    return MatchingSettings(
        remove_diacritics=_get_bool_env("MATCH_REMOVE_DIACRITICS", False),
    )
