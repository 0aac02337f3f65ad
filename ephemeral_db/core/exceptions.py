"""
=========================================
Exception hierarchy for ephemeral-db.
=========================================

Every error raised by the library derives from EphemeralDatabaseError so
callers can catch the whole family in one clause. Errors that carry a
category (collision vs. permission, timeout vs. connection) expose it as an
enum ``kind`` attribute rather than as separate subclasses.

Setup errors are raised to the caller. Teardown errors are never raised out
of a guard; they are stored on the guard and logged.
"""

from enum import Enum
from typing import Optional


class EphemeralDatabaseError(Exception):
    """Base exception for all ephemeral-db errors."""


class ConfigError(EphemeralDatabaseError):
    """Raised for invalid configuration, before any network I/O happens."""


class StateTransitionError(EphemeralDatabaseError):
    """Raised when an ephemeral database is moved to an illegal state."""


class ProvisionErrorKind(Enum):
    NAME_COLLISION = "name_collision"
    PERMISSION_DENIED = "permission_denied"
    CONNECTION_FAILED = "connection_failed"


class ProvisionError(EphemeralDatabaseError):
    """Raised when the server rejects a CREATE DATABASE statement.

    Attributes:
        kind: Category of the rejection
        database: Name of the database that could not be created
    """

    def __init__(self, kind: ProvisionErrorKind, database: str, detail: str = "") -> None:
        msg = f"Could not create database {database} ({kind.value})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.kind = kind
        self.database = database


class MigrationError(EphemeralDatabaseError):
    """Raised when a migration step fails.

    Attributes:
        index: Zero-based position of the failing step
        reason: Driver message explaining the failure
        step_name: Name of the failing step
    """

    def __init__(self, index: int, reason: str, step_name: Optional[str] = None) -> None:
        label = f" ({step_name})" if step_name else ""
        super().__init__(f"Migration step {index}{label} failed: {reason}")
        self.index = index
        self.reason = reason
        self.step_name = step_name


class PoolErrorKind(Enum):
    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"


class PoolError(EphemeralDatabaseError):
    """Raised when a connection or pool to the new database cannot be built."""

    def __init__(self, kind: PoolErrorKind, detail: str = "") -> None:
        msg = f"Could not build connection resource ({kind.value})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.kind = kind


class SetupStage(Enum):
    PROVISION = "provision"
    MIGRATION = "migration"
    POOL = "pool"


class SetupError(EphemeralDatabaseError):
    """Raised by the builder when any setup step fails.

    The original failure is available as ``cause`` (and as ``__cause__``).
    If the best-effort drop of the half-initialised database also failed,
    that failure is kept in ``cleanup_error`` without replacing ``cause``.
    """

    def __init__(
        self,
        stage: SetupStage,
        cause: Exception,
        cleanup_error: Optional[Exception] = None,
    ) -> None:
        msg = f"Setup failed during {stage.value}: {cause}"
        if cleanup_error is not None:
            msg += f" (cleanup also failed: {cleanup_error})"
        super().__init__(msg)
        self.stage = stage
        self.cause = cause
        self.cleanup_error = cleanup_error


class TeardownErrorKind(Enum):
    FORCE_DISCONNECT_FAILED = "force_disconnect_failed"
    DROP_FAILED = "drop_failed"


class TeardownError(EphemeralDatabaseError):
    """Raised by the provisioner when a database cannot be dropped."""

    def __init__(self, kind: TeardownErrorKind, database: str, detail: str = "") -> None:
        msg = f"Could not drop database {database} ({kind.value})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.kind = kind
        self.database = database
