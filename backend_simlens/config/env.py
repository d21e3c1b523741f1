"""
Environment variable loading and validation for SimLens.

- TENDERLY_ACCOUNT_SLUG / TENDERLY_PROJECT_SLUG: project the simulations are saved under
- TENDERLY_ACCESS_KEY: API access key (sent as X-Access-Key)
- TENDERLY_API_BASE_URL: API root (default: https://api.tenderly.co/api/v1)
- SIMLENS_DEFAULT_CHAIN_ID: chain used when a record carries no network id (default: 8453)
- SIMLENS_REQUEST_TIMEOUT_SEC: HTTP timeout for simulation API calls (default: 30)
- SIMLENS_EXECUTION_HISTORY_LIMIT: local executions kept in the activity feed (default: 50)
- LOG_LEVEL: structlog threshold (default: INFO)
- LOG_FORMAT: json (default) or console
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_simlens/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_API_BASE_URL = "https://api.tenderly.co/api/v1"
# Base mainnet
DEFAULT_CHAIN_ID = 8453
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_EXECUTION_HISTORY_LIMIT = 50
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_simlens_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH)


def _env_str(name: str) -> str:
    return (os.getenv(name) or "").strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_account_slug() -> str:
    load_simlens_env()
    return _env_str("TENDERLY_ACCOUNT_SLUG")


def get_project_slug() -> str:
    load_simlens_env()
    return _env_str("TENDERLY_PROJECT_SLUG")


def get_access_key() -> str:
    load_simlens_env()
    return _env_str("TENDERLY_ACCESS_KEY")


def get_api_base_url() -> str:
    """Return TENDERLY_API_BASE_URL without trailing slash, or the public API root."""
    load_simlens_env()
    return (_env_str("TENDERLY_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/")


def get_default_chain_id() -> int:
    load_simlens_env()
    chain_id = _env_int("SIMLENS_DEFAULT_CHAIN_ID", DEFAULT_CHAIN_ID)
    return chain_id if chain_id > 0 else DEFAULT_CHAIN_ID


def get_request_timeout_sec() -> float:
    load_simlens_env()
    raw = _env_str("SIMLENS_REQUEST_TIMEOUT_SEC")
    if not raw:
        return DEFAULT_REQUEST_TIMEOUT_SEC
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_REQUEST_TIMEOUT_SEC
    return value if value > 0 else DEFAULT_REQUEST_TIMEOUT_SEC


def get_execution_history_limit() -> int:
    """
    Return SIMLENS_EXECUTION_HISTORY_LIMIT from env.
    Default: 50. Non-positive values fall back to the default.
    """
    load_simlens_env()
    limit = _env_int("SIMLENS_EXECUTION_HISTORY_LIMIT", DEFAULT_EXECUTION_HISTORY_LIMIT)
    return limit if limit > 0 else DEFAULT_EXECUTION_HISTORY_LIMIT


def get_log_level() -> str:
    """Return LOG_LEVEL upper-cased; unknown level names fall back to INFO."""
    load_simlens_env()
    level = _env_str("LOG_LEVEL").upper()
    if level == "WARN":
        return "WARNING"
    return level if level in LOG_LEVELS else DEFAULT_LOG_LEVEL


def get_log_format() -> str:
    """Return LOG_FORMAT lower-cased (json by default; any other value selects the console renderer)."""
    load_simlens_env()
    return _env_str("LOG_FORMAT").lower() or DEFAULT_LOG_FORMAT
