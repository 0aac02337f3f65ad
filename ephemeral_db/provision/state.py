"""
Lifecycle state of an ephemeral database.

    CREATED -> MIGRATED -> IN_USE -> DROPPED

Any state may jump straight to DROPPED when a setup step fails and the
half-initialised database is cleaned up. Nothing leaves DROPPED.
"""

from enum import Enum
from ephemeral_db.core.exceptions import StateTransitionError
from ephemeral_db.provision.descriptor import DatabaseDescriptor


class DatabaseState(Enum):
    CREATED = "created"
    MIGRATED = "migrated"
    IN_USE = "in_use"
    DROPPED = "dropped"


class TeardownOutcome(Enum):
    """Result of a teardown request."""

    DROPPED = "dropped"
    ALREADY_ABSENT = "already_absent"  # database was not on the server any more
    ALREADY_TORN_DOWN = "already_torn_down"  # guard had run its teardown before
    FAILED = "failed"


_TRANSITIONS = {
    DatabaseState.CREATED: {DatabaseState.MIGRATED, DatabaseState.DROPPED},
    DatabaseState.MIGRATED: {DatabaseState.IN_USE, DatabaseState.DROPPED},
    DatabaseState.IN_USE: {DatabaseState.DROPPED},
    DatabaseState.DROPPED: set(),
}


class EphemeralDatabase:
    """A database descriptor together with its lifecycle state.

    Attributes:
        descriptor: Identity of the database
        state: Current lifecycle state
    """

    def __init__(self, descriptor: DatabaseDescriptor):
        self.descriptor = descriptor
        self.state = DatabaseState.CREATED

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def is_dropped(self) -> bool:
        return self.state is DatabaseState.DROPPED

    def advance(self, new_state: DatabaseState) -> None:
        """Move to ``new_state``.

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise StateTransitionError(
                f"Database {self.name} cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def __repr__(self) -> str:
        return f"EphemeralDatabase({self.name!r}, state={self.state.value})"
