"""Application bootstrap and logging configuration.

Provides the open_session() entrypoint used by the host editor's widget
layer to obtain the live render configuration. This module is
responsible for:

- Configuring a rotating log file under the user's home directory.
- Ensuring logging is only configured once per session.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from render_config import config


LOG_DIR = Path.home() / f".{config.APP_DIR_NAME}"
LOG_FILE = LOG_DIR / f"{config.APP_DIR_NAME}.log"
LOG_LEVEL = logging.INFO

# Parent logger for every module of the package.
PACKAGE_LOGGER = "render_config"


def _configure_logging(log_file: Path = None) -> None:
    """Configure logging for the render_config package.

    Attaches a rotating file handler (1 MB per file, up to 5 backups) to
    the ``render_config`` logger. The handler is attached only once per
    file, so repeated calls do not add duplicate handlers.

    If the log directory or file cannot be created the error is logged
    as a warning and file logging is skipped; ``OSError`` is not
    propagated.

    Args:
        log_file: Override for the log file path (defaults to LOG_FILE).
    """
    log_file = Path(log_file) if log_file is not None else LOG_FILE

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(LOG_LEVEL)

    already_configured = any(
        isinstance(h, RotatingFileHandler)
        and getattr(h, "baseFilename", None) == str(log_file.absolute())
        for h in package_logger.handlers
    )
    if already_configured:
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as exc:
        logging.getLogger(__name__).warning(
            "Unable to configure file logging at %s: %s",
            log_file,
            exc,
        )
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s:%(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    package_logger.addHandler(handler)

    # Send messages to the root logger as well
    package_logger.propagate = True


def ensure_logging(log_file: Path = None) -> None:
    """Ensure logging is configured; safe to call multiple times."""
    _configure_logging(log_file)


def open_session(project_dir=None, store=None):
    """Configure logging and return a bootstrapped RenderSession.

    Args:
        project_dir: Project directory used to derive the default output
            directory. Defaults to the current working directory.
        store: Optional RecordStore; defaults to the JSON file store
            under the user's home directory.

    Raises:
        render_config.storage.PersistenceError: If the stored
            configuration cannot be read or provisioned.
    """
    _configure_logging()

    # Local imports keep this module importable before the rest of the package.
    from render_config.session import RenderSession
    from render_config.storage import ConfigStore

    return RenderSession(ConfigStore(store=store, project_dir=project_dir))
