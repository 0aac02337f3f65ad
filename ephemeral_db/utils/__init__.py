"""
==========================
Utility Functions Package.
==========================

Modules:
    database_utils: Server availability checks and database listing
"""

__all__ = [
    'DatabaseConnectionError',
    'check_database_available',
    'list_databases',
    'wait_for_database',
]

from .database_utils import (
    DatabaseConnectionError,
    check_database_available,
    list_databases,
    wait_for_database,
)
