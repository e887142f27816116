"""
Logging setup.

Console logging for the CLI and an optional append-only file handler
for the enforcement hook.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "WARNING") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def attach_file_handler(
    log_path: Path,
    logger_name: str = "cascade_ledger",
) -> logging.Handler | None:
    """
    Append records from ``logger_name`` to ``log_path``.

    Args:
        log_path: Log file location; parent directories are created
        logger_name: Logger to attach the handler to

    Returns:
        The attached handler, or None if the log directory is unusable
    """
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        print(f"Error creating logs directory: {e}", file=sys.stderr)
        return None

    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    handler.setLevel(logging.INFO)
    target = logging.getLogger(logger_name)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > logging.INFO:
        target.setLevel(logging.INFO)

    logger.debug("File logging enabled", extra={"event": "file_log_attached", "path": str(log_path)})
    return handler
