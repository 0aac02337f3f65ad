"""
========================================================
Provisioning package for ephemeral test databases.
========================================================

Modules:
    descriptor: DatabaseDescriptor and URL parsing
    naming: Collision-resistant database names
    admin: AdminConnection to the shared server
    provisioner: CREATE/DROP DATABASE with forced session termination
    migrations: Ordered schema steps
    pool_factory: Connections and pools bound to the new database
    state: EphemeralDatabase lifecycle
    guard: CleanupGuard
    builder: EphemeralDatabaseBuilder orchestrating the above
"""

__all__ = [
    'AdminConnection',
    'CleanupGuard',
    'DatabaseDescriptor',
    'DatabaseState',
    'EphemeralDatabase',
    'EphemeralDatabaseBuilder',
    'MigrationStep',
    'PoolConfig',
    'TeardownOutcome',
    'TeardownPolicy',
]

from .admin import AdminConnection
from .builder import EphemeralDatabaseBuilder
from .descriptor import DatabaseDescriptor
from .guard import CleanupGuard
from .migrations import MigrationStep
from .pool_factory import PoolConfig
from .provisioner import TeardownPolicy
from .state import DatabaseState, EphemeralDatabase, TeardownOutcome
