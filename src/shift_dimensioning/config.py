"""Runtime settings loaded from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, TypeVar

T = TypeVar("T")

ENV_PREFIX = "DIMENSIONING_"

DEFAULT_DB_PATH = Path(__file__).resolve().parents[2] / "data" / "dimensioning.db"
DEFAULT_MODEL = "gemini-2.5-pro-exp-03-25"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(frozen=True, slots=True)
class Settings:
    """Tunable constants for ingestion, scheduling and inference."""

    db_path: Path = DEFAULT_DB_PATH
    inference_api_key: Optional[str] = None
    inference_model: str = DEFAULT_MODEL
    inference_endpoint: str = DEFAULT_ENDPOINT
    inference_timeout: float = 30.0
    inference_max_attempts: int = 3
    inference_backoff_base: float = 2.0
    break_cap_ratio: float = 0.35
    cutoff_day: int = 5
    enforce_distribution: bool = False
    log_level: str = "INFO"

    @property
    def inference_enabled(self) -> bool:
        return bool(self.inference_api_key)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _read(
    env: Mapping[str, str],
    name: str,
    convert: Callable[[str], T],
    default: T,
) -> T:
    key = ENV_PREFIX + name
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return convert(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {key}: {raw!r} ({exc})") from exc


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``)."""

    env = os.environ if env is None else env
    defaults = Settings()

    settings = Settings(
        db_path=_read(env, "DB_PATH", Path, defaults.db_path),
        inference_api_key=_read(env, "INFERENCE_API_KEY", str, None),
        inference_model=_read(env, "INFERENCE_MODEL", str, defaults.inference_model),
        inference_endpoint=_read(env, "INFERENCE_ENDPOINT", str, defaults.inference_endpoint),
        inference_timeout=_read(env, "INFERENCE_TIMEOUT", float, defaults.inference_timeout),
        inference_max_attempts=_read(env, "INFERENCE_MAX_ATTEMPTS", int, defaults.inference_max_attempts),
        inference_backoff_base=_read(env, "INFERENCE_BACKOFF_BASE", float, defaults.inference_backoff_base),
        break_cap_ratio=_read(env, "BREAK_CAP_RATIO", float, defaults.break_cap_ratio),
        cutoff_day=_read(env, "CUTOFF_DAY", int, defaults.cutoff_day),
        enforce_distribution=_read(env, "ENFORCE_DISTRIBUTION", _parse_bool, defaults.enforce_distribution),
        log_level=_read(env, "LOG_LEVEL", str.upper, defaults.log_level),
    )

    if settings.inference_timeout <= 0:
        raise ValueError(f"Invalid value for {ENV_PREFIX}INFERENCE_TIMEOUT: must be positive")
    if settings.inference_max_attempts < 1:
        raise ValueError(f"Invalid value for {ENV_PREFIX}INFERENCE_MAX_ATTEMPTS: must be at least 1")
    if not 0 < settings.break_cap_ratio <= 1:
        raise ValueError(f"Invalid value for {ENV_PREFIX}BREAK_CAP_RATIO: must be in (0, 1]")
    if not 1 <= settings.cutoff_day <= 31:
        raise ValueError(f"Invalid value for {ENV_PREFIX}CUTOFF_DAY: must be a day of month")
    return settings
