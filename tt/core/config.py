"""
Application configuration loaded from environment variables.

Variables use the ``TT_`` prefix. They may also live in a ``.env`` file, or in
``.env.<TT_ENV>.local`` which takes precedence over ``.env``. Real environment
variables always win over either file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from tt.core.exceptions import BadServerUrl, MissingDatabaseConfig

ENV_VAR_ENV = "TT_ENV"
DEFAULT_DRIVER = "postgresql+asyncpg"


class Settings(BaseSettings):
    """tt server configuration."""

    model_config = SettingsConfigDict(env_prefix="TT_", env_file=".env", extra="ignore")

    # Selects .env.<env>.local
    env: str = ""

    # Database: either a full URL, or all of the sql_* parts
    database_url: Optional[str] = None
    sql_driver: str = DEFAULT_DRIVER
    sql_user: str = ""
    sql_pass: str = ""
    sql_host: str = ""
    sql_port: str = ""
    sql_db: str = ""
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_recycle: int = 180  # seconds

    # Server
    server_url: str = "localhost:8000"
    server_cert: str = ""
    server_key: str = ""
    stop_timeout: int = 10  # seconds

    # Logging
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    log_format: Literal["json", "text"] = "text"
    log_file: str = ""
    log_syslog: bool = False

    # Behaviour
    sort_collation: Optional[str] = None
    sse_listener_buffer: int = 16
    debug: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def _lower_log_level(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def dsn(self) -> str:
        """The database URL, built from the sql_* parts if not given directly."""
        if self.database_url:
            return self.database_url

        parts = (self.sql_user, self.sql_pass, self.sql_host, self.sql_port, self.sql_db)
        if not all(parts):
            raise MissingDatabaseConfig(
                "missing required environment variables",
                details={"required": ["TT_SQL_USER", "TT_SQL_PASS", "TT_SQL_HOST", "TT_SQL_PORT", "TT_SQL_DB"]},
            )

        return URL.create(
            self.sql_driver,
            username=self.sql_user,
            password=self.sql_pass,
            host=self.sql_host,
            port=int(self.sql_port),
            database=self.sql_db,
        ).render_as_string(hide_password=False)

    @property
    def bind(self) -> tuple[str, int]:
        """Split server_url into (host, port)."""
        host, _, port = self.server_url.rpartition(":")
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise BadServerUrl(details={"server_url": self.server_url})
        return host or "0.0.0.0", int(port)


def env_files(directory: str | Path | None = None) -> tuple[Path, ...]:
    """
    Dotenv files to load, lowest precedence first.

    ``.env.<TT_ENV>.local`` is only included when TT_ENV is set.
    """
    base = Path(directory) if directory else Path()
    files = [base / ".env"]
    env = os.environ.get(ENV_VAR_ENV, "")
    if env:
        files.append(base / f".env.{env}.local")
    return tuple(files)


def load_settings(directory: str | Path | None = None, **overrides) -> Settings:
    """Load settings, looking for dotenv files in the given directory."""
    return Settings(_env_file=env_files(directory), **overrides)


@lru_cache
def get_settings() -> Settings:
    return load_settings()
