"""
============================
Server metadata queries.
============================

Catalog queries run on the admin connection. Database names are passed as
the bound parameter ``:db_name``.

Metadata Query Functions:
- check_database_exists_sql: Check if a database exists
- list_sessions_sql: List sessions attached to a database
- list_databases_sql: List all non-template databases
- is_superuser_sql: Check whether the current user is a superuser

Usage:
    from sqlalchemy import text

    result = conn.execute(
        text(check_database_exists_sql(BackendKind.POSTGRES)),
        {'db_name': 'ephemeral_x'}
    )
"""

from ephemeral_db.sql.backends import BackendKind


def check_database_exists_sql(backend: BackendKind) -> str:
    """
    Generate SQL to check if a database exists.

    Returns:
        SQL query that returns 1 if database exists, nothing if not
    """
    if backend is BackendKind.POSTGRES:
        return "SELECT 1 FROM pg_database WHERE datname = :db_name AND NOT datistemplate"
    return "SELECT 1 FROM information_schema.schemata WHERE schema_name = :db_name"


def list_sessions_sql(backend: BackendKind) -> str:
    """
    Generate SQL listing the ids of sessions attached to a database,
    excluding the session running the query.
    """
    if backend is BackendKind.POSTGRES:
        return """SELECT pid
FROM pg_stat_activity
WHERE datname = :db_name
  AND pid <> pg_backend_pid()"""
    return """SELECT id
FROM information_schema.processlist
WHERE db = :db_name
  AND id <> CONNECTION_ID()"""


def list_databases_sql(backend: BackendKind) -> str:
    """Generate SQL listing database names on the server."""
    if backend is BackendKind.POSTGRES:
        return "SELECT datname FROM pg_database WHERE NOT datistemplate ORDER BY datname"
    return "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name"


def is_superuser_sql(backend: BackendKind) -> str:
    """Generate SQL returning a single boolean: is the current user a superuser."""
    if backend is BackendKind.POSTGRES:
        return "SELECT usesuper FROM pg_user WHERE usename = CURRENT_USER"
    return """SELECT COUNT(*) > 0
FROM information_schema.user_privileges
WHERE grantee = CONCAT('''', SUBSTRING_INDEX(CURRENT_USER(), '@', 1),
                       '''@''', SUBSTRING_INDEX(CURRENT_USER(), '@', -1), '''')
  AND privilege_type = 'SUPER'"""
