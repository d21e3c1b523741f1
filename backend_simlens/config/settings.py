"""
Application settings.

Responsibilities:
- Assemble typed settings from the env helpers (simulation API location,
  credentials, default chain, history retention).
- Cache one Settings instance per process; tests reset it with reset_settings().
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from backend_simlens.config import env


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for the simulation client and history feed."""

    api_base_url: str
    account_slug: str
    project_slug: str
    access_key: str
    default_chain_id: int
    request_timeout_sec: float
    execution_history_limit: int

    @property
    def project_api_url(self) -> str:
        """API root scoped to the configured account and project."""
        return (
            f"{self.api_base_url}/account/{self.account_slug}"
            f"/project/{self.project_slug}"
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.account_slug and self.project_slug and self.access_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings.

    Returns:
        Settings built from environment variables (and .env when present).
    """
    return Settings(
        api_base_url=env.get_api_base_url(),
        account_slug=env.get_account_slug(),
        project_slug=env.get_project_slug(),
        access_key=env.get_access_key(),
        default_chain_id=env.get_default_chain_id(),
        request_timeout_sec=env.get_request_timeout_sec(),
        execution_history_limit=env.get_execution_history_limit(),
    )


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
