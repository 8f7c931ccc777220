"""Reconciler - collision detection and inline reconciliation for shared documents.

Detects when several authors have silently overwritten each other inside a
document section, and applies the user's chosen resolution back into the
shared document as a single atomic edit.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"

# Handlers added by the last setup_logging call, replaced on the next one
_installed_handlers: list[logging.Handler] = []


def setup_logging(log_dir: Path | None = None) -> Path:
    """Configure logging to both console and rotating file.

    Calling it again replaces the handlers from the previous call.

    Args:
        log_dir: Directory for the log file. Defaults to ``app.log_dir``
            from settings.

    Returns:
        Path of the log file that was configured.
    """
    if log_dir is None:
        from reconciler.config import get_settings

        log_dir = get_settings().app.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "reconciler.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    console_handler.setFormatter(console_formatter)

    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers[:] = [file_handler, console_handler]

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())
    return log_file
