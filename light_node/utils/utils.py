#!/usr/bin/env python3
"""
Utility Functions Module
Contains helper functions used by the entry point and supervisor
"""

import logging
import traceback

logger = logging.getLogger(__name__)


def log_exception(func_name: str, exception: Exception) -> None:
    """Log exception with traceback"""
    logger.error(f"Exception in {func_name}: {exception}")
    logger.error(f"Traceback: {traceback.format_exc()}")
