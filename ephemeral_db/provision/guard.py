"""
==========================================
Cleanup guard for an ephemeral database.
==========================================

A CleanupGuard owns the obligation to drop one ephemeral database. Its
teardown closes the resource handed to the caller, then drops the database,
and runs at most once no matter how many times or by which path it is
triggered:

    - explicitly, via guard.teardown()
    - on leaving a ``with guard:`` block, including by an exception
    - when the guard is garbage collected or the interpreter exits

The last path is backed by weakref.finalize, whose callback runs once and
holds no reference to the guard itself.

Teardown never raises. A failure is logged and kept on the guard as
``guard.error`` with ``guard.outcome == TeardownOutcome.FAILED``, so an
exception already propagating out of the test is neither masked nor joined
by a second one.

Example:
    >>> guard, connection = builder.setup_connection()
    >>> with guard:
    ...     connection.exec_driver_sql("SELECT 1")
    >>> guard.outcome
    <TeardownOutcome.DROPPED: 'dropped'>
"""

import weakref
from typing import Any, Optional

from ephemeral_db.core.logger import get_logger
from ephemeral_db.provision.admin import AdminConnection
from ephemeral_db.provision.descriptor import DatabaseDescriptor
from ephemeral_db.provision.pool_factory import close_resource
from ephemeral_db.provision.provisioner import TeardownPolicy, drop_database
from ephemeral_db.provision.state import DatabaseState, EphemeralDatabase, TeardownOutcome

logger = get_logger(__name__)


class _TeardownReport:
    """Outcome storage shared between a guard and its finalizer."""

    def __init__(self):
        self.outcome: Optional[TeardownOutcome] = None
        self.error: Optional[Exception] = None


def _teardown(
    database: EphemeralDatabase,
    admin: AdminConnection,
    resource: Any,
    policy: TeardownPolicy,
    report: _TeardownReport
) -> TeardownOutcome:
    name = database.name

    if resource is not None:
        try:
            close_resource(resource)
        except Exception as e:
            # the drop below still terminates whatever stayed connected
            logger.warning(f"Could not close resource for {name}: {e}")

    try:
        outcome = drop_database(admin, database.descriptor, policy)
        database.advance(DatabaseState.DROPPED)
    except Exception as e:
        report.outcome = TeardownOutcome.FAILED
        report.error = e
        logger.error(f"❌ Teardown of {name} failed: {e}")
        return TeardownOutcome.FAILED

    report.outcome = outcome
    return outcome


class CleanupGuard:
    """Owner of the obligation to drop one ephemeral database.

    The resource returned next to the guard must not be used after teardown;
    the guard closes it but cannot stop other references to it.

    Attributes:
        descriptor: Identity of the guarded database
        outcome: TeardownOutcome once teardown has run, else None
        error: Exception captured by a failed teardown, else None
    """

    def __init__(
        self,
        database: EphemeralDatabase,
        admin: AdminConnection,
        resource: Any = None,
        policy: Optional[TeardownPolicy] = None
    ):
        self._database = database
        self._report = _TeardownReport()
        self._finalizer = weakref.finalize(
            self,
            _teardown,
            database,
            admin,
            resource,
            policy or TeardownPolicy(),
            self._report
        )

    @property
    def descriptor(self) -> DatabaseDescriptor:
        return self._database.descriptor

    @property
    def name(self) -> str:
        return self._database.name

    @property
    def state(self) -> DatabaseState:
        return self._database.state

    @property
    def outcome(self) -> Optional[TeardownOutcome]:
        return self._report.outcome

    @property
    def error(self) -> Optional[Exception]:
        return self._report.error

    @property
    def torn_down(self) -> bool:
        return not self._finalizer.alive

    def teardown(self) -> TeardownOutcome:
        """
        Close the resource and drop the database, once.

        Returns:
            The outcome of this call; ALREADY_TORN_DOWN on every call after
            the first, without contacting the server
        """
        outcome = self._finalizer()
        if outcome is None:
            logger.debug(f"Teardown of {self.name} already ran")
            return TeardownOutcome.ALREADY_TORN_DOWN
        return outcome

    def __enter__(self) -> 'CleanupGuard':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown()
        return False

    def __repr__(self) -> str:
        return f"CleanupGuard({self.name!r}, state={self.state.value})"
