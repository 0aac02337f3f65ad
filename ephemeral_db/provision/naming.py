"""
============================================
Collision-resistant database name generation.
============================================

Names look like ``<prefix>_<time>_<random>``: a readable prefix, a base-36
nanosecond timestamp and 64 random bits from the secrets module. Uniqueness
across concurrently running test processes relies on that entropy alone; no
lock or server round trip is involved.

Example:
    >>> generate_database_name('orders_test')
    'orders_test_1h8qz3l0x9kfm_5c1e0a9b7d3f2e41'
"""

import re
import secrets
import time
from typing import Union

from sqlalchemy.engine import URL

from ephemeral_db.core.exceptions import ConfigError
from ephemeral_db.provision.descriptor import DatabaseDescriptor, parse_origin
from ephemeral_db.sql.backends import BackendKind

_PREFIX_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'
_RANDOM_BYTES = 8


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return ''.join(reversed(digits)) or '0'


def validate_prefix(prefix: str) -> str:
    """Check a name prefix and return it lower-cased.

    Raises:
        ConfigError: If the prefix is empty or has characters outside
            letters, digits and underscore, or starts with a digit
    """
    if not isinstance(prefix, str) or not _PREFIX_PATTERN.match(prefix):
        raise ConfigError(
            f"Database name prefix must match {_PREFIX_PATTERN.pattern}, got {prefix!r}"
        )
    return prefix.lower()


def generate_database_name(prefix: str, backend: BackendKind = BackendKind.POSTGRES) -> str:
    """Generate a database name that is valid for ``backend``.

    The prefix is shortened when the full name would exceed the backend's
    identifier limit; the time and random parts are never cut.

    Args:
        prefix: Human-readable prefix
        backend: Backend whose identifier rules apply

    Returns:
        Lower-case name made of letters, digits and underscores

    Raises:
        ConfigError: If the prefix is malformed
    """
    prefix = validate_prefix(prefix)
    suffix = f"{_base36(time.time_ns())}_{secrets.token_hex(_RANDOM_BYTES)}"
    room = backend.max_identifier_length - len(suffix) - 1
    return f"{prefix[:room]}_{suffix}"


def new_descriptor(
    origin: Union[str, URL],
    backend: BackendKind,
    prefix: str
) -> DatabaseDescriptor:
    """Build a descriptor for a freshly named database under ``origin``."""
    return DatabaseDescriptor(
        name=generate_database_name(prefix, backend),
        origin=parse_origin(origin),
        backend=backend
    )
