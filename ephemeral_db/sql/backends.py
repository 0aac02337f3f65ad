"""
================================================
Backend families and their identifier rules.
================================================

Each supported server family differs in how identifiers are quoted, how
long they may be, and which SQLAlchemy driver names select it. Everything
backend-specific in the sql package keys off BackendKind.
"""

from enum import Enum

from ephemeral_db.core.exceptions import ConfigError


class BackendKind(Enum):
    """Relational backend family of the shared server."""

    POSTGRES = 'postgres'
    MYSQL = 'mysql'

    @property
    def max_identifier_length(self) -> int:
        """Longest database name the backend accepts."""
        # NAMEDATALEN - 1 for PostgreSQL; MySQL counts characters
        return 63 if self is BackendKind.POSTGRES else 64

    @property
    def quote_char(self) -> str:
        """Character used to quote identifiers."""
        return '"' if self is BackendKind.POSTGRES else '`'

    @classmethod
    def from_drivername(cls, drivername: str) -> 'BackendKind':
        """Infer the backend from an SQLAlchemy driver name.

        Args:
            drivername: e.g. 'postgresql', 'postgresql+psycopg2', 'mysql+pymysql'

        Returns:
            Matching BackendKind

        Raises:
            ConfigError: If the driver does not belong to a supported family
        """
        family = drivername.split('+', 1)[0].lower()
        if family in ('postgres', 'postgresql'):
            return cls.POSTGRES
        if family in ('mysql', 'mariadb'):
            return cls.MYSQL
        raise ConfigError(f"Unsupported database backend: {drivername}")


def quote_identifier(name: str, backend: BackendKind) -> str:
    """Quote an identifier for the given backend, doubling embedded quotes.

    Example:
        >>> quote_identifier('test_db', BackendKind.POSTGRES)
        '"test_db"'
        >>> quote_identifier('test_db', BackendKind.MYSQL)
        '`test_db`'
    """
    q = backend.quote_char
    return f"{q}{name.replace(q, q + q)}{q}"
