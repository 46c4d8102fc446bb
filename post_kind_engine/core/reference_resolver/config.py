"""
Runtime configuration for the reference resolver.

Values are read from the environment once at import time. `.env.local` is
loaded first so that it overrides `.env`, matching how the scripts load
their settings.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

_project_root = Path(__file__).resolve().parents[3]
load_dotenv(_project_root / ".env.local")
load_dotenv(_project_root / ".env")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


USER_AGENT = os.getenv(
    "POST_KINDS_USER_AGENT",
    "post-kind-engine/0.1 (+https://indieweb.org/Post_Kinds)",
)

# Seconds before a single fetch is abandoned
FETCH_TIMEOUT = _float_env("POST_KINDS_FETCH_TIMEOUT", 10.0)

# Bodies larger than this are rejected rather than parsed
MAX_RESPONSE_BYTES = _int_env("POST_KINDS_MAX_RESPONSE_BYTES", 2 * 1024 * 1024)

# In-flight resolutions per item
MAX_CONCURRENT_RESOLUTIONS = _int_env("POST_KINDS_MAX_CONCURRENT_RESOLUTIONS", 4)

CACHE_DIR = os.getenv("POST_KINDS_CACHE_DIR", "cache")

# Seconds a cached resolution stays valid (0 disables expiry)
CACHE_TTL = _int_env("POST_KINDS_CACHE_TTL", 24 * 60 * 60)

# Minimum seconds between two requests to the same host
RATE_LIMIT_DELAY = _float_env("POST_KINDS_RATE_LIMIT_DELAY", 0.0)

ALLOWED_PORTS = frozenset(
    int(port)
    for port in os.getenv("POST_KINDS_ALLOWED_PORTS", "80,443,8080").split(",")
    if port.strip()
)
