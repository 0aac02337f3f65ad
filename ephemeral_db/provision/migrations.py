"""
==================================================
Schema migration runner for ephemeral databases.
==================================================

Applies an ordered list of schema steps to a freshly created database. This
is deliberately not a migration framework: there is no version table, no
down migrations and no retry. Steps run once, in order, each inside its own
transaction, and the first failure aborts the run.

A step is either a SQL script or a callable taking the SQLAlchemy
Connection. Scripts are split into single statements so drivers that reject
multi-statement strings work too.

Migration directories:
    migrations/
        2024-01-01-000000_create_users/up.sql
        2024-01-02-000000_add_orders/up.sql
    or
    migrations/
        001_create_users.sql
        002_add_orders.sql

Example:
    >>> steps = [
    ...     MigrationStep('create_users', sql='CREATE TABLE users (id SERIAL PRIMARY KEY)'),
    ...     MigrationStep('seed', action=lambda conn: conn.exec_driver_sql('SELECT 1')),
    ... ]
    >>> apply_migrations(connection, steps)
    2
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import Connection

from ephemeral_db.core.exceptions import ConfigError, MigrationError
from ephemeral_db.core.logger import get_logger
from ephemeral_db.sql.script import split_sql_statements

logger = get_logger(__name__)

MIGRATIONS_DIRECTORY_NAME = 'migrations'
UP_SCRIPT = 'up.sql'
BACKSLASH_ESCAPE_DIALECTS = ('mysql', 'mariadb')


@dataclass(frozen=True)
class MigrationStep:
    """One schema step: exactly one of ``sql`` or ``action`` is set.

    Attributes:
        name: Label used in logs and in MigrationError
        sql: SQL script, possibly holding several statements
        action: Callable receiving the open Connection
    """

    name: str
    sql: Optional[str] = None
    action: Optional[Callable[[Connection], None]] = None

    def __post_init__(self):
        if (self.sql is None) == (self.action is None):
            raise ConfigError(
                f"Migration step {self.name!r} needs exactly one of sql or action"
            )

    def run(self, connection: Connection) -> None:
        if self.action is not None:
            self.action(connection)
            return
        backslash_escapes = connection.dialect.name in BACKSLASH_ESCAPE_DIALECTS
        for statement in split_sql_statements(self.sql, backslash_escapes):
            connection.exec_driver_sql(
                statement,
                execution_options={'no_parameters': True}
            )


MigrationLike = Union[MigrationStep, str, Callable[[Connection], None]]


def as_migration_step(step: MigrationLike, index: int) -> MigrationStep:
    """Normalise a SQL string or callable into a MigrationStep."""
    if isinstance(step, MigrationStep):
        return step
    if isinstance(step, str):
        return MigrationStep(name=f"step_{index}", sql=step)
    if callable(step):
        return MigrationStep(name=getattr(step, '__name__', f"step_{index}"), action=step)
    raise ConfigError(f"Unsupported migration step at index {index}: {step!r}")


def normalize_steps(steps: Iterable[MigrationLike]) -> Tuple[MigrationStep, ...]:
    """Normalise every entry of ``steps``, keeping their order."""
    return tuple(as_migration_step(step, index) for index, step in enumerate(steps))


def apply_migrations(connection: Connection, steps: Sequence[MigrationStep]) -> int:
    """
    Apply ``steps`` strictly in order.

    Args:
        connection: Connection to the new database
        steps: Ordered migration steps

    Returns:
        Number of steps applied

    Raises:
        MigrationError: On the first failing step, with its index and reason
    """
    for index, step in enumerate(steps):
        logger.debug(f"Applying migration {index}: {step.name}")
        try:
            with connection.begin():
                step.run(connection)
        except Exception as e:
            reason = str(getattr(e, 'orig', None) or e).strip()
            logger.error(f"Migration {index} ({step.name}) failed: {reason}")
            raise MigrationError(index, reason, step.name) from e

    if steps:
        logger.info(f"Applied {len(steps)} migration steps")
    return len(steps)


def load_migrations_from_directory(directory: Union[str, Path]) -> List[MigrationStep]:
    """
    Load migration steps from a directory.

    Sub-directories contribute their ``up.sql``; loose ``*.sql`` files are
    used directly (``*.down.sql`` is skipped). Entries are ordered by name.

    Raises:
        ConfigError: If the directory is missing or holds no migrations
    """
    path = Path(directory)
    if not path.is_dir():
        raise ConfigError(f"Migrations directory not found: {path}")

    steps = []
    for entry in sorted(path.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            up_script = entry / UP_SCRIPT
            if up_script.is_file():
                steps.append(MigrationStep(entry.name, sql=up_script.read_text(encoding='utf-8')))
        elif entry.suffix == '.sql' and not entry.name.endswith('.down.sql'):
            steps.append(MigrationStep(entry.stem, sql=entry.read_text(encoding='utf-8')))

    if not steps:
        raise ConfigError(f"No migrations found in {path}")

    logger.debug(f"Loaded {len(steps)} migrations from {path}")
    return steps


def find_migrations_directory(start: Optional[Union[str, Path]] = None) -> Path:
    """
    Search ``start`` (default: current directory) and its parents for a
    ``migrations`` directory.

    Raises:
        ConfigError: If no ancestor holds one
    """
    origin = Path(start).resolve() if start else Path.cwd()

    for directory in (origin, *origin.parents):
        candidate = directory / MIGRATIONS_DIRECTORY_NAME
        if candidate.is_dir():
            return candidate

    raise ConfigError(f"No {MIGRATIONS_DIRECTORY_NAME} directory found in or above {origin}")
