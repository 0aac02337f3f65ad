"""
==================================================
Core infrastructure package for ephemeral-db.
==================================================

Configuration, logging and the exception hierarchy shared by every other
package.

Modules:
    config: Library defaults loaded from environment variables
    logger: Logging helpers
    exceptions: Error taxonomy
"""

__all__ = ['get_logger', 'setup_logging', 'config', 'Config']

from ephemeral_db.core.config import Config, config
from ephemeral_db.core.logger import get_logger, setup_logging
