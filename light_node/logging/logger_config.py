#!/usr/bin/env python3
"""
CENTRALIZED LOGGING CONFIGURATION
==================================

Purpose:
- Setup per-component loggers with rotating file handlers
- Isolate logs by component: supervisor, response_pump, reconnect, health_poll
- Each logger has its own rotating log file (50MB, 10 backups)
- All logs also go to console with clean formatting

USAGE:
    from light_node.logging.logger_config import setup_application_logging, get_component_logger

    # Setup once in main
    setup_application_logging(log_dir="logs", level="INFO")

    # Get logger in each module
    logger = get_component_logger("reconnect")

Component Loggers:
    - SUPERVISOR (ConnectionSupervisor, main.py)
    - RESPONSE_PUMP (ResponsePump)
    - RECONNECT (Reconnector)
    - HEALTH_POLL (HealthPoller)
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict

# Standard format: [TIMESTAMP] [LEVEL] [COMPONENT] [MESSAGE]
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'
LOG_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

# Key → logger name (also used as the log file stem)
# Loggers using __name__ (e.g. 'light_node.session.stdio_engine') are
# children of their parent logger, so we register parent loggers as well.
COMPONENT_NAMES = {
    # ---- Supervisor loops ----
    'supervisor':    'SUPERVISOR',
    'response_pump': 'RESPONSE_PUMP',
    'reconnect':     'RECONNECT',
    'health_poll':   'HEALTH_POLL',

    # ---- Session engine / guard ----
    'session':       'light_node.session',

    # ---- Core / Config / RPC ----
    'core':          'light_node.core',
    'rpc':           'light_node.rpc',
}

# Global configuration
_log_dir: Optional[Path] = None
_log_level: str = 'INFO'
_console_handler: Optional[logging.StreamHandler] = None
_component_handlers: Dict[str, logging.handlers.RotatingFileHandler] = {}


def setup_application_logging(
    log_dir: str = 'logs',
    level: str = 'INFO',
    max_bytes: int = 50 * 1024 * 1024,  # 50 MB per file
    backup_count: int = 10,  # Keep 10 backups
) -> None:
    """
    Initialize application-wide logging with per-component rotating handlers.

    This MUST be called once at application startup (in main()).

    Args:
        log_dir: Directory to store log files
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        max_bytes: Max size of a log file before rotation (default 50MB)
        backup_count: Number of backup files to keep (default 10)
    """
    global _log_dir, _log_level, _console_handler

    _log_dir = Path(log_dir)
    _log_level = level

    _log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove any existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATETIME_FORMAT)

    # Console handler (shared by all loggers)
    _console_handler = logging.StreamHandler(sys.stdout)
    _console_handler.setLevel(getattr(logging, level.upper()))
    _console_handler.setFormatter(formatter)
    root_logger.addHandler(_console_handler)

    _setup_component_handlers(max_bytes, backup_count, formatter)

    # Catch-all so nothing outside the component tree is lost
    root_fh = logging.handlers.RotatingFileHandler(
        _log_dir / "application.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8',
    )
    root_fh.setLevel(getattr(logging, level.upper()))
    root_fh.setFormatter(formatter)
    root_logger.addHandler(root_fh)


def _setup_component_handlers(max_bytes: int, backup_count: int, formatter: logging.Formatter) -> None:
    """
    Setup rotating file handlers for each component and IMMEDIATELY attach them,
    so modules using logging.getLogger(__name__) get a file handler too.
    """
    for key, component_name in COMPONENT_NAMES.items():
        logger = logging.getLogger(component_name)

        # Re-running setup (tests, reconfiguration) replaces the old handler
        old = _component_handlers.pop(component_name, None)
        if old is not None:
            logger.removeHandler(old)
            old.close()

        handler = logging.handlers.RotatingFileHandler(
            _log_dir / f"{key}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        handler.setLevel(getattr(logging, _log_level.upper()))
        handler.setFormatter(formatter)

        _component_handlers[component_name] = handler
        logger.addHandler(handler)


def get_component_logger(component_key: str) -> logging.Logger:
    """
    Get or create a logger for a specific component.

    Safe to call at import time, before setup_application_logging();
    handlers are attached to the same named logger once setup runs.

    Example:
        logger = get_component_logger('health_poll')
        logger.info("Poll loop started")
    """
    if component_key not in COMPONENT_NAMES:
        raise ValueError(f"Unknown component: {component_key}. Must be one of {list(COMPONENT_NAMES.keys())}")

    return logging.getLogger(COMPONENT_NAMES[component_key])


def get_log_files() -> Dict[str, Path]:
    """
    Get paths to all active component log files.

    Returns:
        Dict mapping component names to log file paths
    """
    return {
        component_name: Path(handler.baseFilename)
        for component_name, handler in _component_handlers.items()
    }
