"""Logging setup for hosts and the vaultbridge CLI.

Version: 0.1.0

Backends never call into this module; they log through the function the
bridge hands them. This only decides where records end up: the root
logger's stream handler, plus an optional log file that is either reset
or marked with a restart banner each time the plugin starts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Config and --log-level spellings
LEVEL_ALIASES = {
    "CRITICAL": "CRITICAL",
    "ERROR": "ERROR",
    "WARN": "WARNING",
    "WARNING": "WARNING",
    "INFO": "INFO",
    "DEBUG": "DEBUG",
}

# Vault client transport; its DEBUG output includes request headers
CLIENT_LOGGERS = ("hvac", "urllib3")

RESTART_BANNER = "\n=== vaultbridge started {timestamp} ===\n\n"


def normalize_log_level(level_name: str | None) -> str:
    """Return a canonical level name; unknown or empty input means INFO."""
    if not level_name:
        return "INFO"
    return LEVEL_ALIASES.get(level_name.strip().upper(), "INFO")


def level_number(level_name: str | None) -> int:
    return getattr(logging, normalize_log_level(level_name))


def prepare_log_file(log_path: Path, reset_on_start: bool) -> None:
    """Delete ``log_path`` or append a restart banner to it."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_path.exists():
        return

    try:
        if reset_on_start:
            log_path.unlink()
        else:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(RESTART_BANNER.format(timestamp=timestamp))
    except OSError:
        pass  # the file handler opens in append mode either way


def _file_handler_for(root: logging.Logger, log_path: Path) -> Optional[logging.FileHandler]:
    target = str(log_path.resolve())
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return handler
    return None


def configure_logging(
    level_name: str | None,
    log_file: Optional[str | Path] = None,
    reset_on_start: bool = True,
) -> str:
    """Apply ``level_name`` to the root logger and its handlers.

    The Vault client loggers never go below WARNING. When ``log_file`` is
    given a file handler is attached once; later calls only update its
    level.

    Returns:
        The normalized level name applied.
    """
    normalized = normalize_log_level(level_name)
    numeric_level = level_number(normalized)

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.setLevel(numeric_level)

    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    if log_file:
        log_path = Path(log_file)
        try:
            if _file_handler_for(root, log_path) is None:
                prepare_log_file(log_path, reset_on_start)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
                root.addHandler(file_handler)
        except OSError as exc:
            logging.getLogger(__name__).warning("Failed to attach file handler %s: %s", log_file, exc)

    return normalized
