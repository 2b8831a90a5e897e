from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SYNC_DRIVER = "postgresql+psycopg://"


def sync_database_url(url: str) -> str:
    """Rewrite a runtime (asyncpg) or driverless URL to the psycopg3 driver migrations and seeding use."""
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://", "postgresql://"):
        if url.startswith(prefix):
            return _SYNC_DRIVER + url[len(prefix) :]
    return url


class DbSettings(BaseSettings):
    # Shares DATABASE_URL with the booking service, so unrelated service keys must not fail here.
    model_config = SettingsConfigDict(extra="ignore")

    database_url: str = _SYNC_DRIVER + "app:app@localhost:5432/hotel"
    seed_value: int = 1337

    @field_validator("database_url")
    @classmethod
    def _sync_driver(cls, v: str) -> str:
        return sync_database_url(v)


SETTINGS = DbSettings()
