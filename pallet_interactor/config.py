"""
Configuration helpers for the pallet interactor.

This module centralizes gateway URL selection, API key loading, default
timeouts, session limits and logging settings. No secrets are stored in the
repository; the API key is read from environment or a local file if present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Default connection settings
DEFAULT_GATEWAY_URL = os.getenv("INTERACTOR_GATEWAY_URL", "http://localhost:8900")


def _load_float(env_var: str, default: float) -> float:
    raw_value = os.getenv(env_var)
    if raw_value:
        try:
            return float(raw_value)
        except ValueError:
            return default
    return default


def _load_timeout() -> float:
    return _load_float("INTERACTOR_HTTP_TIMEOUT", 10.0)


def _load_metadata_ttl() -> float:
    return _load_float("INTERACTOR_METADATA_TTL", 60.0)


DEFAULT_TIMEOUT = _load_timeout()
DEFAULT_METADATA_TTL = _load_metadata_ttl()

# API key handling
API_KEY_ENV_VAR = "INTERACTOR_API_KEY"
API_KEY_FILE_ENV_VAR = "INTERACTOR_API_KEY_FILE"
DEFAULT_API_KEY_FILE = "apikey.txt"

# Session and rate limits
MAX_SESSIONS = 256
DEFAULT_CATEGORY = os.getenv("INTERACTOR_DEFAULT_CATEGORY", "EXTRINSIC")
DEFAULT_RATE_LIMIT_QPS = 5
LOG_LEVEL = os.getenv("INTERACTOR_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("INTERACTOR_LOG_FORMAT", "json")  # json or plain


def load_api_key() -> Optional[str]:
    """
    Load the gateway API key from environment or a local file.

    Returns:
        The API key string if available, otherwise None. The key is never logged
        or returned to callers.
    """
    env_key = os.getenv(API_KEY_ENV_VAR)
    if env_key:
        return env_key.strip()

    key_path = os.getenv(API_KEY_FILE_ENV_VAR, DEFAULT_API_KEY_FILE)
    if key_path:
        path = Path(key_path)
        if path.is_file():
            return path.read_text(encoding="utf-8").strip() or None

    return None


@dataclass(slots=True)
class InteractorConfig:
    """Runtime configuration for the interactor service."""

    gateway_url: str = DEFAULT_GATEWAY_URL
    timeout: float = DEFAULT_TIMEOUT
    api_key: Optional[str] = load_api_key()
    metadata_ttl_seconds: float = DEFAULT_METADATA_TTL
    max_sessions: int = MAX_SESSIONS
    default_category: str = DEFAULT_CATEGORY
    rate_limit_qps: float = DEFAULT_RATE_LIMIT_QPS
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT
    per_key_rate_limits: dict[str, float] = field(default_factory=dict)


default_config = InteractorConfig()
