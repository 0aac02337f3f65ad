"""
=====================================================================
Data Definition Language (DDL) for creating and dropping databases.
=====================================================================

Pure functions returning SQL strings for the statements the provisioner
issues against the admin connection. Database names cannot be bound as
parameters, so they are quoted with quote_identifier(); session ids are
coerced to int before being formatted in.

Note: CREATE/DROP DATABASE cannot run inside a transaction block, so the
admin connection executes these in AUTOCOMMIT mode.

Functions:
    create_database_sql: Generate CREATE DATABASE statement
    drop_database_sql: Generate DROP DATABASE statement
    kill_session_sql: Terminate one session attached to a database

Example:
    >>> from ephemeral_db.sql.backends import BackendKind
    >>> from ephemeral_db.sql.ddl import drop_database_sql
    >>>
    >>> drop_database_sql('ephemeral_x', BackendKind.POSTGRES, force=True)
    'DROP DATABASE IF EXISTS "ephemeral_x" WITH (FORCE);'
"""

from ephemeral_db.sql.backends import BackendKind, quote_identifier


def create_database_sql(database_name: str, backend: BackendKind) -> str:
    """
    Generate CREATE DATABASE statement.

    The server defaults decide template, encoding and collation.

    Args:
        database_name: Name of the database to create
        backend: Backend family of the server

    Returns:
        SQL CREATE DATABASE statement
    """
    return f"CREATE DATABASE {quote_identifier(database_name, backend)};"


def drop_database_sql(
    database_name: str,
    backend: BackendKind,
    if_exists: bool = True,
    force: bool = False
) -> str:
    """
    Generate DROP DATABASE statement.

    Args:
        database_name: Name of the database to drop
        backend: Backend family of the server
        if_exists: Add IF EXISTS clause
        force: Add WITH (FORCE) clause (PostgreSQL 13+ only, ignored elsewhere)

    Returns:
        SQL DROP DATABASE statement
    """
    sql_parts = ["DROP DATABASE"]

    if if_exists:
        sql_parts.append("IF EXISTS")

    sql_parts.append(quote_identifier(database_name, backend))

    if force and backend is BackendKind.POSTGRES:
        sql_parts.append("WITH (FORCE)")

    return " ".join(sql_parts) + ";"


def kill_session_sql(session_id: int, backend: BackendKind) -> str:
    """
    Generate SQL that terminates a single server session.

    Args:
        session_id: Backend pid (PostgreSQL) or processlist id (MySQL)
        backend: Backend family of the server

    Returns:
        SQL terminating the session
    """
    if backend is BackendKind.POSTGRES:
        return f"SELECT pg_terminate_backend({int(session_id)})"
    return f"KILL {int(session_id)}"
