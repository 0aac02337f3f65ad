"""
====================================================
SQL generation package for ephemeral-db.
====================================================

Pure functions producing the backend-specific SQL the provisioner and the
migration runner need. Nothing in this package touches a connection.

    - backends.py: BackendKind and identifier quoting
    - ddl.py: CREATE/DROP DATABASE and session termination
    - query_builder.py: catalog queries (existence, sessions, privileges)
    - script.py: splitting migration scripts into statements
"""

__all__ = [
    'BackendKind', 'quote_identifier',
    'create_database_sql', 'drop_database_sql', 'kill_session_sql',
    'split_sql_statements'
]

from .backends import BackendKind, quote_identifier
from .ddl import create_database_sql, drop_database_sql, kill_session_sql
from .script import split_sql_statements
