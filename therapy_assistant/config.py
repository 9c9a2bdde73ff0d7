"""Centralized configuration for the therapy practice assistant.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/therapy-assistant/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SSM_PREFIX = "/therapy-assistant"

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store, or ``None``.

    Lookup failures are logged, not raised, so the caller can report the
    missing variable by name.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.warning("SSM lookup for %s failed", name, exc_info=True)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {SSM_PREFIX}/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise OSError(f"Configuration {name} must be an integer, got {raw!r}") from exc


# ── Dashboard API ───────────────────────────────────────────────────
DASHBOARD_API_TOKEN: str = _require_env("DASHBOARD_API_TOKEN")
DASHBOARD_API_BASE_URL: str = os.getenv("DASHBOARD_API_BASE_URL", "http://localhost:5000")
DASHBOARD_TIMEOUT_SECONDS: float = float(os.getenv("DASHBOARD_TIMEOUT_SECONDS", "15"))

# ── Caches ──────────────────────────────────────────────────────────
SESSION_CACHE_MAX_BYTES: int = _int_env("SESSION_CACHE_MAX_BYTES", 20 * 1024 * 1024)
STRATEGY_CACHE_MAX_BYTES: int = _int_env("STRATEGY_CACHE_MAX_BYTES", 5 * 1024 * 1024)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int_env("SERVER_PORT", 8000)
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
