"""
===============================================
Pytest suite for ephemeral_db.provision.guard
===============================================

Sections:
---------
1. Explicit teardown
2. Scope exit (context manager, garbage collection)
3. Failure capture
4. Concurrency
"""

import gc
import threading
from unittest.mock import MagicMock

import pytest
from pytest import mark, raises

from ephemeral_db.core.exceptions import TeardownError
from ephemeral_db.provision.guard import CleanupGuard
from ephemeral_db.provision.naming import new_descriptor
from ephemeral_db.provision.provisioner import create_database
from ephemeral_db.provision.state import DatabaseState, EphemeralDatabase, TeardownOutcome
from ephemeral_db.sql.backends import BackendKind


@pytest.fixture
def in_use(admin, pg_origin):
    """Factory for an IN_USE database created on the fake server."""
    def factory():
        descriptor = new_descriptor(pg_origin, BackendKind.POSTGRES, 'guard')
        create_database(admin, descriptor)
        database = EphemeralDatabase(descriptor)
        database.advance(DatabaseState.MIGRATED)
        database.advance(DatabaseState.IN_USE)
        return database
    return factory


# ========================
# 1. EXPLICIT TEARDOWN
# ========================

@mark.smoke
def test_teardown_drops_database(admin, pg_server, in_use, fast_policy):
    database = in_use()
    guard = CleanupGuard(database, admin, policy=fast_policy)

    assert guard.teardown() is TeardownOutcome.DROPPED
    assert database.name not in pg_server.databases
    assert guard.state is DatabaseState.DROPPED
    assert guard.outcome is TeardownOutcome.DROPPED
    assert guard.torn_down


@mark.unit
def test_teardown_runs_once(admin, pg_server, in_use, fast_policy):
    guard = CleanupGuard(in_use(), admin, policy=fast_policy)

    first = guard.teardown()
    second = guard.teardown()

    assert first is TeardownOutcome.DROPPED
    assert second is TeardownOutcome.ALREADY_TORN_DOWN
    assert pg_server.count('DROP DATABASE') == 1
    assert guard.outcome is TeardownOutcome.DROPPED
    assert admin.owned_names == frozenset()


@mark.unit
def test_teardown_closes_resource_before_drop(admin, pg_server, in_use, fast_policy):
    resource = MagicMock()
    resource.close.side_effect = lambda: calls.append(('close', pg_server.count('DROP')))
    calls = []

    CleanupGuard(in_use(), admin, resource, fast_policy).teardown()

    assert calls == [('close', 0)]
    assert pg_server.count('DROP DATABASE') == 1


@mark.integration
def test_teardown_with_checked_out_connections(admin, pg_server, in_use, fast_policy):
    """Connections the caller still holds do not block the drop."""
    pg_server.version = (12, 9)
    database = in_use()
    pg_server.attach(database.name)
    pg_server.attach(database.name)

    guard = CleanupGuard(database, admin, MagicMock(), fast_policy)

    assert guard.teardown() is TeardownOutcome.DROPPED
    assert pg_server.count('SELECT pg_terminate_backend') == 2
    assert database.name not in pg_server.databases


@mark.edge_case
def test_database_removed_out_of_band(admin, pg_server, in_use, fast_policy):
    database = in_use()
    pg_server.databases.discard(database.name)

    guard = CleanupGuard(database, admin, policy=fast_policy)

    assert guard.teardown() is TeardownOutcome.ALREADY_ABSENT
    assert guard.state is DatabaseState.DROPPED


# ==========================================
# 2. SCOPE EXIT
# ==========================================

@mark.integration
def test_context_manager_drops_on_normal_exit(admin, pg_server, in_use, fast_policy):
    database = in_use()
    with CleanupGuard(database, admin, policy=fast_policy) as guard:
        assert database.name in pg_server.databases

    assert database.name not in pg_server.databases
    assert guard.outcome is TeardownOutcome.DROPPED


@mark.integration
def test_context_manager_drops_when_body_raises(admin, pg_server, in_use, fast_policy):
    database = in_use()

    with raises(ZeroDivisionError):
        with CleanupGuard(database, admin, policy=fast_policy):
            1 / 0

    assert database.name not in pg_server.databases


@mark.integration
def test_garbage_collected_guard_drops_database(admin, pg_server, in_use, fast_policy):
    database = in_use()
    guard = CleanupGuard(database, admin, policy=fast_policy)

    del guard
    gc.collect()

    assert database.name not in pg_server.databases
    assert database.state is DatabaseState.DROPPED


@mark.integration
def test_explicit_teardown_then_collection_drops_once(admin, pg_server, in_use, fast_policy):
    guard = CleanupGuard(in_use(), admin, policy=fast_policy)
    guard.teardown()

    del guard
    gc.collect()

    assert pg_server.count('DROP DATABASE') == 1


# ====================
# 3. FAILURE CAPTURE
# ====================

@mark.edge_case
def test_failed_drop_is_captured_not_raised(admin, pg_server, in_use, fast_policy):
    database = in_use()
    pg_server.drop_failures = 10
    guard = CleanupGuard(database, admin, policy=fast_policy)

    assert guard.teardown() is TeardownOutcome.FAILED
    assert isinstance(guard.error, TeardownError)
    assert guard.outcome is TeardownOutcome.FAILED
    assert database.name in pg_server.databases
    assert database.state is DatabaseState.IN_USE
    # a later call does not retry
    assert guard.teardown() is TeardownOutcome.ALREADY_TORN_DOWN


@mark.edge_case
def test_failed_drop_does_not_mask_body_exception(admin, pg_server, in_use, fast_policy):
    pg_server.drop_failures = 10

    with raises(KeyError):
        with CleanupGuard(in_use(), admin, policy=fast_policy):
            raise KeyError('from test body')


@mark.edge_case
def test_resource_close_failure_still_drops(admin, pg_server, in_use, fast_policy):
    database = in_use()
    resource = MagicMock()
    resource.close.side_effect = RuntimeError("already closed")

    guard = CleanupGuard(database, admin, resource, fast_policy)

    assert guard.teardown() is TeardownOutcome.DROPPED
    assert database.name not in pg_server.databases


# ================
# 4. CONCURRENCY
# ================

@mark.integration
def test_concurrent_teardown_drops_once(admin, pg_server, in_use, fast_policy):
    guard = CleanupGuard(in_use(), admin, policy=fast_policy)
    barrier = threading.Barrier(8)
    outcomes = []

    def worker():
        barrier.wait()
        outcomes.append(guard.teardown())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert pg_server.count('DROP DATABASE') == 1
    assert outcomes.count(TeardownOutcome.DROPPED) == 1
    assert outcomes.count(TeardownOutcome.ALREADY_TORN_DOWN) == 7


@mark.integration
def test_guards_sharing_one_admin(admin, pg_server, in_use, fast_policy):
    guards = [CleanupGuard(in_use(), admin, policy=fast_policy) for _ in range(5)]
    names = {guard.name for guard in guards}

    threads = [threading.Thread(target=guard.teardown) for guard in guards]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert names.isdisjoint(pg_server.databases)
