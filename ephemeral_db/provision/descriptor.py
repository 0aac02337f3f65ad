"""
Identity of an ephemeral database and origin URL handling.
"""

from dataclasses import dataclass
from typing import Union

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from ephemeral_db.core.exceptions import ConfigError
from ephemeral_db.sql.backends import BackendKind


def parse_url(value: Union[str, URL]) -> URL:
    """Parse a database URL, normalising the legacy ``postgres://`` scheme.

    Raises:
        ConfigError: If the value is not a valid SQLAlchemy URL
    """
    try:
        url = make_url(value)
    except (ArgumentError, ValueError, TypeError) as e:
        raise ConfigError(f"Invalid database URL {value!r}: {e}") from e

    family, _, driver = url.drivername.partition('+')
    if family == 'postgres':
        url = url.set(drivername='postgresql' + (f'+{driver}' if driver else ''))
    return url


def parse_origin(origin: Union[str, URL]) -> URL:
    """Parse the origin under which ephemeral databases are addressed.

    The origin carries scheme, credentials, host and port only; the
    database name is appended per ephemeral database.

    Raises:
        ConfigError: If the origin is malformed or already names a database
    """
    url = parse_url(origin)
    if url.database:
        raise ConfigError(
            f"Origin must not include a database name, got {url.database!r}"
        )
    return url


@dataclass(frozen=True)
class DatabaseDescriptor:
    """Immutable identity of one ephemeral database.

    Attributes:
        name: Generated database name
        origin: Server URL without a database
        backend: Backend family of the server
    """

    name: str
    origin: URL
    backend: BackendKind

    @property
    def url(self) -> URL:
        """URL connecting to this database."""
        return self.origin.set(database=self.name)
