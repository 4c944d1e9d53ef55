"""
Environment settings for the fixture builder.

Uses Pydantic Settings to load the database location, logging level and the
fixture/fingerprint locations from environment variables or a `.env` file.
Per-project options that hold Python objects (naming rules, callbacks, the
declarative base) live on `fixture_builder.configuration.Configuration`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class Settings(BaseSettings):
    # Database
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("fixture_builder", alias="DB_NAME")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Fixtures
    fixtures_path: str = Field("tests/fixtures", alias="FIXTURES_PATH")
    fingerprint_file: str = Field("tmp/fixture_builder.yml", alias="FIXTURE_BUILDER_FILE")
    use_sha1_digests: bool = Field(False, alias="FIXTURE_BUILDER_SHA1")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def build_database_url(self) -> URL:
        """
        Return DATABASE_URL when set, otherwise a psycopg Postgres URL from the parts.
        """
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            "postgresql+psycopg",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
