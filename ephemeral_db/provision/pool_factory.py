"""
===============================================
Connections and pools bound to a new database.
===============================================

Builds the resource handed to the caller: a single SQLAlchemy Connection
or an Engine backed by a bounded QueuePool. Both are verified with a real
connection before being returned, so connectivity problems surface during
setup rather than inside the test.

close_resource() is the synchronous close/drain step a guard runs before
dropping the database. Disposing an engine closes the connections sitting
in its pool; connections the caller still has checked out stay open and are
terminated server-side by the provisioner.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from sqlalchemy import Connection, Engine, create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import NullPool, QueuePool

from ephemeral_db.core.config import config
from ephemeral_db.core.exceptions import ConfigError, PoolError, PoolErrorKind
from ephemeral_db.core.logger import get_logger

logger = get_logger(__name__)

# Backends whose DBAPI drivers accept an integer ``connect_timeout`` argument
_CONNECT_TIMEOUT_BACKENDS = ('postgresql', 'mysql', 'mariadb')


@dataclass(frozen=True)
class PoolConfig:
    """Recognised pool options.

    Attributes:
        max_connections: Cap on concurrent connections to the database
        connection_timeout: Seconds to wait for a free slot (also used as the
            driver's connect timeout)
    """

    max_connections: int = field(default_factory=lambda: config.pool.max_connections)
    connection_timeout: float = field(default_factory=lambda: config.pool.connection_timeout)

    def __post_init__(self):
        if not isinstance(self.max_connections, int) or self.max_connections < 1:
            raise ConfigError(
                f"max_connections must be a positive integer, got {self.max_connections!r}"
            )
        if self.connection_timeout <= 0:
            raise ConfigError(
                f"connection_timeout must be positive, got {self.connection_timeout!r}"
            )


def connect_timeout_args(address: Union[str, URL], timeout: Optional[float]) -> Dict[str, Any]:
    """Driver connect arguments bounding connection establishment time."""
    if timeout is None:
        return {}
    if make_url(address).get_backend_name() not in _CONNECT_TIMEOUT_BACKENDS:
        return {}
    return {'connect_timeout': max(1, int(timeout))}


def _pool_error(exc: SQLAlchemyError) -> PoolError:
    if isinstance(exc, PoolTimeoutError):
        return PoolError(PoolErrorKind.TIMEOUT, str(exc))
    return PoolError(PoolErrorKind.CONNECTION_FAILED, str(getattr(exc, 'orig', None) or exc))


def build_pool(address: Union[str, URL], pool_config: Optional[PoolConfig] = None) -> Engine:
    """
    Build a connection pool for ``address``.

    Args:
        address: URL of the ephemeral database
        pool_config: Pool sizing (defaults from configuration)

    Returns:
        Engine whose pool never exceeds ``max_connections``

    Raises:
        PoolError: TIMEOUT or CONNECTION_FAILED
    """
    pool_config = pool_config or PoolConfig()

    engine = create_engine(
        address,
        poolclass=QueuePool,
        pool_size=pool_config.max_connections,
        max_overflow=0,
        pool_timeout=pool_config.connection_timeout,
        pool_pre_ping=True,
        connect_args=connect_timeout_args(address, pool_config.connection_timeout)
    )

    try:
        with engine.connect():
            pass
    except SQLAlchemyError as e:
        engine.dispose()
        logger.error(f"Could not open pool: {e}")
        raise _pool_error(e) from e

    logger.debug(f"Built pool with max {pool_config.max_connections} connections")
    return engine


def open_connection(address: Union[str, URL], timeout: Optional[float] = None) -> Connection:
    """
    Open a single connection to ``address``.

    The connection sits on a NullPool engine, so closing it closes the
    underlying DBAPI connection.

    Raises:
        PoolError: CONNECTION_FAILED (or TIMEOUT)
    """
    if timeout is None:
        timeout = config.pool.connection_timeout

    engine = create_engine(
        address,
        poolclass=NullPool,
        connect_args=connect_timeout_args(address, timeout)
    )

    try:
        return engine.connect()
    except SQLAlchemyError as e:
        engine.dispose()
        logger.error(f"Could not open connection: {e}")
        raise _pool_error(e) from e


def close_resource(resource: Any) -> None:
    """Close a Connection or dispose an Engine, synchronously."""
    if isinstance(resource, Connection):
        engine = resource.engine
        resource.close()
        engine.dispose()
    elif isinstance(resource, Engine):
        resource.dispose()
    elif resource is not None:
        resource.close()
