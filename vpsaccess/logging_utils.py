"""Logging helpers for vps-access-manager."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "vpsaccess"
AUDIT_LOGGER = f"{ROOT_LOGGER}.audit"


def _build_formatter() -> logging.Formatter:
    return logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def setup_logging(log_path: str | Path, level: int = logging.INFO) -> logging.Logger:
    """Initialize console and file logging.

    Parameters
    ----------
    log_path:
        File that receives every record, including the audit trail. Parent
        directories are created on demand.
    level:
        Threshold applied to the ``vpsaccess`` logger.

    Returns
    -------
    logging.Logger
        Configured ``vpsaccess`` logger instance.
    """

    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Avoid attaching duplicate handlers in case of repeated initialization.
    existing_handlers = {type(handler) for handler in logger.handlers}

    formatter = _build_formatter()

    if logging.StreamHandler not in existing_handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if logging.FileHandler not in existing_handlers:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized", extra={"log_file": str(log_file)})
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a namespaced logger under the ``vpsaccess`` hierarchy."""

    base = logging.getLogger(ROOT_LOGGER)
    if not name:
        return base
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return base.getChild(name)


def log_action(action: str, message: str) -> None:
    """Append one operator-visible entry to the audit trail."""

    logging.getLogger(AUDIT_LOGGER).info("%s: %s", action, message, extra={"action": action})
