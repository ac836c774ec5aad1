"""Root logger setup for the CLI and the long-running reconciler."""

from __future__ import annotations

import logging
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# chatty at INFO: one line per job run and per migration step
_LIBRARY_LOGGERS: Final[tuple[str, ...]] = ("apscheduler", "alembic.runtime.migration")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Install the root handler once; ``force=True`` replaces an existing one.

    Below DEBUG, scheduler and migration chatter is limited to warnings.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
