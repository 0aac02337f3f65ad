"""
==================================================
Database creation and teardown on the admin connection.
==================================================

Creates and drops ephemeral databases through an AdminConnection passed in
explicitly on every call. All SQL comes from ephemeral_db.sql so backend
differences stay out of this module.

Dropping a database with attached sessions fails on every supported backend,
so drop_database() always terminates the other sessions first. When a pool
was closed cleanly beforehand there is nothing to terminate; the step is
there for connections the caller still holds.

Drop retry policy:
    Each attempt terminates sessions and then issues DROP DATABASE IF EXISTS.
    The n-th retry waits ``retry_delay * backoff ** (n - 1)``
    seconds, up to ``max_attempts`` attempts in total (3 by default). A
    session can reconnect between termination and the drop; the retry covers
    that window.

Example:
    >>> from ephemeral_db.provision.provisioner import create_database, drop_database
    >>>
    >>> create_database(admin, descriptor)
    >>> drop_database(admin, descriptor)
    <TeardownOutcome.DROPPED: 'dropped'>
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from psycopg2 import errorcodes
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ephemeral_db.core.config import config
from ephemeral_db.core.exceptions import (
    ConfigError,
    ProvisionError,
    ProvisionErrorKind,
    TeardownError,
    TeardownErrorKind,
)
from ephemeral_db.core.logger import get_logger
from ephemeral_db.provision.admin import AdminConnection
from ephemeral_db.provision.descriptor import DatabaseDescriptor
from ephemeral_db.provision.state import TeardownOutcome
from ephemeral_db.sql.backends import BackendKind
from ephemeral_db.sql.ddl import create_database_sql, drop_database_sql, kill_session_sql
from ephemeral_db.sql.query_builder import (
    check_database_exists_sql,
    is_superuser_sql,
    list_sessions_sql,
)

logger = get_logger(__name__)

# MySQL server error numbers
ER_DB_CREATE_EXISTS = 1007
ER_ACCESS_DENIED = (1044, 1045, 1227)
ER_NO_SUCH_THREAD = 1094

# DROP DATABASE ... WITH (FORCE) exists from PostgreSQL 13 on
FORCE_DROP_MIN_VERSION = (13,)


@dataclass(frozen=True)
class TeardownPolicy:
    """Bounded retry policy for dropping a database.

    Attributes:
        max_attempts: Total terminate+drop attempts (at least 1)
        retry_delay: Seconds to wait before the first retry
        backoff: Multiplier applied to the delay after each retry
    """

    max_attempts: int = field(default_factory=lambda: config.teardown.max_attempts)
    retry_delay: float = field(default_factory=lambda: config.teardown.retry_delay)
    backoff: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay < 0:
            raise ConfigError(f"retry_delay must not be negative, got {self.retry_delay}")
        if self.backoff < 1.0:
            raise ConfigError(f"backoff must be at least 1.0, got {self.backoff}")

    def delay_before(self, attempt: int) -> float:
        """Delay to wait before ``attempt`` (2 is the first retry)."""
        return self.retry_delay * (self.backoff ** (attempt - 2))


def _driver_code(exc: SQLAlchemyError) -> Any:
    """SQLSTATE (PostgreSQL) or error number (MySQL) of a wrapped DBAPI error."""
    orig = getattr(exc, 'orig', None)
    if orig is None:
        return None
    pgcode = getattr(orig, 'pgcode', None)
    if pgcode:
        return pgcode
    args = getattr(orig, 'args', ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def _reason(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, 'orig', None)
    return str(orig if orig is not None else exc).strip()


def classify_create_error(exc: SQLAlchemyError) -> ProvisionErrorKind:
    """Map a failed CREATE DATABASE to a ProvisionErrorKind."""
    code = _driver_code(exc)
    if code in (errorcodes.DUPLICATE_DATABASE, ER_DB_CREATE_EXISTS):
        return ProvisionErrorKind.NAME_COLLISION
    if code == errorcodes.INSUFFICIENT_PRIVILEGE or code in ER_ACCESS_DENIED:
        return ProvisionErrorKind.PERMISSION_DENIED
    # unreachable server, dropped connection, or anything the server did not categorise
    return ProvisionErrorKind.CONNECTION_FAILED


def create_database(admin: AdminConnection, descriptor: DatabaseDescriptor) -> None:
    """
    Create the database named by ``descriptor``.

    On success the name is registered as owned by ``admin``, which is what
    later allows drop_database() to remove it.

    Raises:
        ConfigError: If descriptor and admin connection disagree on the backend
        ProvisionError: If the server rejects the statement
    """
    if descriptor.backend is not admin.backend:
        raise ConfigError(
            f"Descriptor backend {descriptor.backend.value} does not match "
            f"admin backend {admin.backend.value}"
        )

    create_sql = create_database_sql(descriptor.name, descriptor.backend)

    try:
        logger.info(f"Creating database {descriptor.name}")
        admin.execute(create_sql)
    except SQLAlchemyError as e:
        kind = classify_create_error(e)
        logger.error(f"Error creating database {descriptor.name}: {_reason(e)}")
        raise ProvisionError(kind, descriptor.name, _reason(e)) from e

    admin.register(descriptor.name)
    logger.info(f"Successfully created database {descriptor.name}")


def database_exists(admin: AdminConnection, database_name: str) -> bool:
    """Check whether ``database_name`` exists on the server."""
    sql = check_database_exists_sql(admin.backend)
    return admin.fetch_scalar(sql, {'db_name': database_name}) is not None


def is_superuser(admin: AdminConnection) -> bool:
    """Check whether the admin connection's user has superuser privileges."""
    return bool(admin.fetch_scalar(is_superuser_sql(admin.backend)))


def terminate_sessions(admin: AdminConnection, descriptor: DatabaseDescriptor) -> int:
    """
    Terminate every other session attached to the database.

    Returns:
        Number of sessions that were attached when termination started
    """
    session_ids = admin.fetch_column(
        list_sessions_sql(admin.backend),
        {'db_name': descriptor.name}
    )

    if not session_ids:
        logger.debug(f"No active sessions on {descriptor.name}")
        return 0

    logger.info(f"Terminating {len(session_ids)} sessions on {descriptor.name}")
    for session_id in session_ids:
        try:
            admin.execute(kill_session_sql(session_id, admin.backend))
        except DBAPIError as e:
            if _driver_code(e) != ER_NO_SUCH_THREAD:
                raise
            # session ended between listing and KILL

    return len(session_ids)


def _supports_force(admin: AdminConnection) -> bool:
    if admin.backend is not BackendKind.POSTGRES:
        return False
    version = admin.server_version()
    return bool(version) and tuple(version) >= FORCE_DROP_MIN_VERSION


def drop_database(
    admin: AdminConnection,
    descriptor: DatabaseDescriptor,
    policy: Optional[TeardownPolicy] = None
) -> TeardownOutcome:
    """
    Drop the database named by ``descriptor`` after terminating its sessions.

    A database that is already gone counts as success. Once the database is
    gone its name is released from the admin connection, so a later call for
    the same descriptor is refused; repeated teardown goes through
    CleanupGuard, which runs only once.

    Args:
        admin: Admin connection that created the database
        descriptor: Database to drop
        policy: Retry policy (defaults from configuration)

    Returns:
        TeardownOutcome.DROPPED, or TeardownOutcome.ALREADY_ABSENT if the
        database did not exist when the first attempt started

    Raises:
        TeardownError: FORCE_DISCONNECT_FAILED or DROP_FAILED once all attempts
            are used up, or DROP_FAILED straight away for a database this admin
            connection did not create
    """
    policy = policy or TeardownPolicy()
    name = descriptor.name

    if not admin.owns(name):
        raise TeardownError(
            TeardownErrorKind.DROP_FAILED,
            name,
            "refusing to drop a database this admin connection did not create"
        )

    last_error: Optional[SQLAlchemyError] = None
    failed_kind = TeardownErrorKind.DROP_FAILED

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            delay = policy.delay_before(attempt)
            logger.warning(
                f"⏳ Drop of {name} failed (attempt {attempt - 1}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s: {_reason(last_error)}"
            )
            time.sleep(delay)

        failed_kind = TeardownErrorKind.DROP_FAILED
        try:
            if not database_exists(admin, name):
                if attempt == 1:
                    logger.info(f"Database {name} does not exist")
                    outcome = TeardownOutcome.ALREADY_ABSENT
                else:
                    # an earlier attempt reported an error after the drop went through
                    outcome = TeardownOutcome.DROPPED
                break

            failed_kind = TeardownErrorKind.FORCE_DISCONNECT_FAILED
            terminate_sessions(admin, descriptor)

            failed_kind = TeardownErrorKind.DROP_FAILED
            drop_sql = drop_database_sql(
                name,
                descriptor.backend,
                if_exists=True,
                force=_supports_force(admin)
            )
            logger.info(f"Dropping database {name}")
            admin.execute(drop_sql)

        except SQLAlchemyError as e:
            last_error = e
            continue

        if attempt > 1:
            logger.info(f"Dropped {name} after {attempt - 1} retries")
        logger.info(f"✅ Successfully dropped database {name}")
        outcome = TeardownOutcome.DROPPED
        break
    else:
        logger.error(
            f"❌ Could not drop database {name} after {policy.max_attempts} attempts: "
            f"{_reason(last_error)}"
        )
        raise TeardownError(failed_kind, name, _reason(last_error)) from last_error

    admin.release(name)
    return outcome
