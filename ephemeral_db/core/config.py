"""
=============================================
Configuration management for ephemeral-db.
=============================================

Loads library defaults from environment variables (optionally from a .env
file found from the current working directory) and exposes them through a
Config singleton.

The builder never reads the server address from here on its own: admin URL
and origin are always passed in explicitly. They are loaded only so that
callers and test suites have one place to pick them up from.

Example:
    >>> from ephemeral_db.core.config import config
    >>>
    >>> config.name_prefix
    'ephemeral'
    >>> config.pool.max_connections
    5
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from ephemeral_db.core.exceptions import ConfigError

# Load environment variables from the nearest .env file, if any
load_dotenv(find_dotenv(usecwd=True))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


@dataclass
class ServerConfig:
    """Location of the shared database server.

    Attributes:
        admin_url: URL of a privileged connection able to create/drop databases
        origin: Scheme, credentials, host and port used to reach new databases
    """

    admin_url: Optional[str]
    origin: Optional[str]

    @property
    def is_configured(self) -> bool:
        """True when both the admin URL and the origin are set."""
        return bool(self.admin_url and self.origin)


@dataclass
class PoolDefaults:
    """Default pool sizing used when setup_pool() gets no PoolConfig.

    Attributes:
        max_connections: Cap on concurrent connections to the new database
        connection_timeout: Seconds to wait for a free pool slot
    """

    max_connections: int
    connection_timeout: float


@dataclass
class TeardownDefaults:
    """Default retry policy for dropping a database.

    Attributes:
        max_attempts: Number of terminate+drop attempts before giving up
        retry_delay: Delay in seconds before the first retry
    """

    max_attempts: int
    retry_delay: float


class Config:
    """Centralized configuration manager.

    Attributes:
        server: ServerConfig with admin URL and origin
        pool: PoolDefaults for connection pools
        teardown: TeardownDefaults for the drop retry policy
        name_prefix: Default prefix for generated database names
        log_level: Default log level used by setup_logging()
    """

    def __init__(self):
        """Initialize configuration from environment variables.

        Raises:
            ConfigError: If a numeric setting cannot be parsed
        """
        self.server = ServerConfig(
            admin_url=os.getenv('EPHEMERAL_DB_ADMIN_URL'),
            origin=os.getenv('EPHEMERAL_DB_ORIGIN')
        )

        self.pool = PoolDefaults(
            max_connections=_env_int('EPHEMERAL_DB_MAX_CONNECTIONS', 5),
            connection_timeout=_env_float('EPHEMERAL_DB_CONNECTION_TIMEOUT', 30.0)
        )

        self.teardown = TeardownDefaults(
            max_attempts=_env_int('EPHEMERAL_DB_TEARDOWN_ATTEMPTS', 3),
            retry_delay=_env_float('EPHEMERAL_DB_TEARDOWN_RETRY_DELAY', 0.2)
        )

        self.name_prefix = os.getenv('EPHEMERAL_DB_NAME_PREFIX', 'ephemeral')
        self.log_level = os.getenv('EPHEMERAL_DB_LOG_LEVEL', 'INFO')

    @property
    def admin_url(self) -> Optional[str]:
        """Get the admin connection URL."""
        return self.server.admin_url

    @property
    def origin(self) -> Optional[str]:
        """Get the origin used for new databases."""
        return self.server.origin


# Global configuration instance
config = Config()
