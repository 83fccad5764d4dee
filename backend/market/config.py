"""Runtime settings for the market metrics cache, read from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r; using %s", key, raw, default)
        return default


def _env_float(env: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid number for %s=%r; using %s", key, raw, default)
        return default


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    cache_duration_seconds: float = 60.0
    fetch_max_attempts: int = 3
    fetch_base_delay_ms: int = 1000
    fetch_timeout_seconds: Optional[float] = None  # None keeps aiohttp's default
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    frankfurter_base_url: str = "https://api.frankfurter.app"
    single_flight: bool = True
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001
    static_dir: str = "../client"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        attempts = _env_int(env, "FETCH_MAX_ATTEMPTS", defaults.fetch_max_attempts)
        if attempts < 1:
            logger.warning("FETCH_MAX_ATTEMPTS must be >= 1, got %s; using 1", attempts)
            attempts = 1
        return cls(
            cache_duration_seconds=_env_float(env, "CACHE_DURATION_SECONDS", defaults.cache_duration_seconds),
            fetch_max_attempts=attempts,
            fetch_base_delay_ms=max(0, _env_int(env, "FETCH_BASE_DELAY_MS", defaults.fetch_base_delay_ms)),
            fetch_timeout_seconds=_env_float(env, "FETCH_TIMEOUT_SECONDS", None),
            coingecko_base_url=env.get("COINGECKO_BASE_URL", defaults.coingecko_base_url).rstrip("/"),
            frankfurter_base_url=env.get("FRANKFURTER_BASE_URL", defaults.frankfurter_base_url).rstrip("/"),
            single_flight=_env_bool(env, "SINGLE_FLIGHT", defaults.single_flight),
            environment=env.get("APP_ENV") or env.get("NODE_ENV") or defaults.environment,
            host=env.get("HOST", defaults.host),
            port=_env_int(env, "PORT", defaults.port),
            static_dir=env.get("STATIC_DIR", defaults.static_dir),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["Settings"]
