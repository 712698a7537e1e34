"""Store connection settings.

The partner program runs on MySQL in production; PostgreSQL is supported and
SQLite backs development and the test suite. Every value can be set through a
``DB_`` environment variable.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORTS = {"mysql": 3306, "postgres": 5432}


class DatabaseSettings(BaseSettings):
    """
    Connection and pool configuration for the relational store.

    Example environment variables:
        DB_DRIVER=mysql+aiomysql
        DB_HOST=db.internal
        DB_NAME=parceiros
        DB_USER=app
        DB_PASSWORD=secret
        DB_POOL_SIZE=5
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    driver: str = Field(
        default="sqlite+aiosqlite",
        description="SQLAlchemy async dialect+driver: mysql+aiomysql, postgresql+asyncpg or sqlite+aiosqlite"
    )

    host: str = Field(default="localhost")
    port: int = Field(default=0, ge=0, description="0 selects the dialect's standard port")
    name: str = Field(default="parceiros")
    user: str = Field(default="")
    password: str = Field(default="", repr=False)

    sqlite_path: Path = Field(default=Path("data/parceiros.db"))

    # pool_size + max_overflow caps the connections shared by all requests.
    # A checkout waiting longer than pool_timeout fails and is retried.
    pool_size: int = Field(default=5, ge=1, le=100, description="Pooled connections")
    max_overflow: int = Field(default=0, ge=0, le=100, description="Connections allowed above pool_size")
    pool_timeout: int = Field(default=10, ge=1, description="Seconds to wait for a free connection")
    pool_recycle: int = Field(default=1800, ge=60, description="Connection lifetime in seconds")
    pool_pre_ping: bool = Field(default=True, description="Ping connections on checkout")

    connect_timeout: int = Field(default=10, ge=1, description="Seconds to establish a connection")
    echo_sql: bool = Field(default=False, description="Log every SQL statement")

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        return self.driver.lower().startswith("sqlite")

    @computed_field
    @property
    def is_postgres(self) -> bool:
        return "postgres" in self.driver.lower()

    @computed_field
    @property
    def is_mysql(self) -> bool:
        driver = self.driver.lower()
        return "mysql" in driver or "mariadb" in driver

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return DEFAULT_PORTS["postgres"] if self.is_postgres else DEFAULT_PORTS["mysql"]

    @property
    def async_url(self) -> str:
        """
        URL handed to ``create_async_engine``.

        For SQLite the database folder is created on first access.
        """
        if self.is_sqlite:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{self.sqlite_path.absolute()}"
        return f"{self.driver}://{self._credentials(self.password)}{self.host}:{self.effective_port}/{self.name}"

    @property
    def safe_url(self) -> str:
        """URL with the password masked, for log records."""
        if self.is_sqlite:
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        masked = "***" if self.password else ""
        return f"{self.driver}://{self._credentials(masked)}{self.host}:{self.effective_port}/{self.name}"

    def _credentials(self, password: str) -> str:
        if not self.user:
            return ""
        return f"{self.user}:{password}@" if password else f"{self.user}@"

    def get_connect_args(self) -> Dict[str, Any]:
        """Driver keyword arguments bounding connection establishment."""
        if self.is_sqlite:
            return {"check_same_thread": False, "timeout": self.connect_timeout}
        if self.is_postgres:
            return {"timeout": self.connect_timeout}
        return {"connect_timeout": self.connect_timeout}

    def pool_options(self) -> Dict[str, Any]:
        """Queue pool keyword arguments for ``create_async_engine``."""
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": self.pool_pre_ping,
        }


@lru_cache
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()
