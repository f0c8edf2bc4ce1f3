from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo, bundled catalog).
    - Every field can be overridden with an ``ORGSCOPE_`` environment variable.
    """

    model_config = SettingsConfigDict(env_prefix="ORGSCOPE_", extra="ignore")

    db_url: str | None = None
    catalog_path: str | None = None
    log_level: str = "INFO"

    # Hierarchy snapshot lifetime; organization edits invalidate it immediately.
    hierarchy_cache_ttl_seconds: int = 300
    context_load_timeout_seconds: float = 2.0

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "orgscope.db"
        return f"sqlite:///{db_path}"

    def resolved_catalog_path(self) -> Path:
        if self.catalog_path:
            return Path(self.catalog_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "rbac_catalog.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
