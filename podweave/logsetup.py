"""
Logging setup shared by the Podweave server and CLI.

The level comes from the PODWEAVE_LOG_LEVEL environment variable (default
INFO). All modules log through children of the ``podweave`` logger and tag
their messages with a bracketed area such as ``[stream]`` or ``[ws]``.
"""

import logging
import os
from typing import Optional

from .constants import DEFAULT_LOG_LEVEL, LOG_FORMAT

log = logging.getLogger('podweave')


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the level from the argument or env.

    Handlers are installed once; the root level is applied on every call so
    a later ``--log-level`` wins over the import-time default.
    """
    name = (level or os.getenv('PODWEAVE_LOG_LEVEL', DEFAULT_LOG_LEVEL)).upper()
    resolved = getattr(logging, name, logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)


def log_exception(msg: str, exc: BaseException, level: int = logging.WARNING, logger: Optional[logging.Logger] = None) -> None:
    """Log an exception with proper formatting."""
    (logger or log).log(level, f"{msg}: {exc.__class__.__name__}: {exc}")
