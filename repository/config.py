"""
Repository Configuration.

============================================================
PURPOSE
============================================================
Reads database and repository settings from the environment.
A `.env` file in the working directory is loaded first.

============================================================
ENVIRONMENT VARIABLES
============================================================
- DATABASE_URL            SQLAlchemy URL (default: local SQLite file)
- DATABASE_ECHO           Log SQL statements ("1", "true", "yes")
- DATABASE_POOL_SIZE      Connections kept in pool
- DATABASE_MAX_OVERFLOW   Connections beyond pool size
- DATABASE_POOL_TIMEOUT   Seconds to wait for a connection
- DATABASE_POOL_RECYCLE   Recycle connections after N seconds
- REPOSITORY_PER_PAGE     Default page size for paginate()

============================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from repository.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./repository.db"
DEFAULT_PER_PAGE = 25

_TRUTHY = {"1", "true", "yes", "on"}


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            repository_name="RepositoryConfig",
            message=f"{name} must be an integer, got {raw!r}",
            identifier=name,
        ) from None


@dataclass(frozen=True)
class RepositoryConfig:
    """
    Database connection and repository defaults.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    per_page: int = DEFAULT_PER_PAGE

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True,
    ) -> "RepositoryConfig":
        """
        Build configuration from environment variables.

        Args:
            env: Mapping to read instead of os.environ
            load_env_file: Load a .env file before reading

        Returns:
            RepositoryConfig

        Raises:
            ConfigurationError: If a numeric setting is malformed
        """
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))
        if env is None:
            env = os.environ

        url = env.get("DATABASE_URL")
        if not url:
            url = DEFAULT_DATABASE_URL
            logger.warning(f"DATABASE_URL not set, using default: {url}")

        per_page = _read_int(env, "REPOSITORY_PER_PAGE", DEFAULT_PER_PAGE)
        if per_page < 1:
            raise ConfigurationError(
                repository_name="RepositoryConfig",
                message=f"REPOSITORY_PER_PAGE must be positive, got {per_page}",
                identifier="REPOSITORY_PER_PAGE",
            )

        return cls(
            database_url=url,
            echo=env.get("DATABASE_ECHO", "").strip().lower() in _TRUTHY,
            pool_size=_read_int(env, "DATABASE_POOL_SIZE", 10),
            max_overflow=_read_int(env, "DATABASE_MAX_OVERFLOW", 20),
            pool_timeout=_read_int(env, "DATABASE_POOL_TIMEOUT", 30),
            pool_recycle=_read_int(env, "DATABASE_POOL_RECYCLE", 1800),
            per_page=per_page,
        )
