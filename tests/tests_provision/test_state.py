"""
Pytest suite for ephemeral_db.provision.state.
"""

import pytest
from pytest import mark, raises

from ephemeral_db.core.exceptions import StateTransitionError
from ephemeral_db.provision.naming import new_descriptor
from ephemeral_db.provision.state import DatabaseState, EphemeralDatabase
from ephemeral_db.sql.backends import BackendKind


@pytest.fixture
def database(pg_origin):
    return EphemeralDatabase(new_descriptor(pg_origin, BackendKind.POSTGRES, 'state'))


@mark.unit
def test_full_lifecycle(database):
    assert database.state is DatabaseState.CREATED

    for state in (DatabaseState.MIGRATED, DatabaseState.IN_USE, DatabaseState.DROPPED):
        database.advance(state)
        assert database.state is state

    assert database.is_dropped


@mark.unit
@pytest.mark.parametrize("path", [
    [],
    [DatabaseState.MIGRATED],
])
def test_failed_setup_may_drop_early(database, path):
    for state in path:
        database.advance(state)
    database.advance(DatabaseState.DROPPED)
    assert database.state is DatabaseState.DROPPED


@mark.edge_case
def test_cannot_skip_migration(database):
    with raises(StateTransitionError, match="created to in_use"):
        database.advance(DatabaseState.IN_USE)
    assert database.state is DatabaseState.CREATED


@mark.edge_case
@pytest.mark.parametrize("target", list(DatabaseState))
def test_dropped_is_terminal(database, target):
    database.advance(DatabaseState.DROPPED)
    with raises(StateTransitionError):
        database.advance(target)
