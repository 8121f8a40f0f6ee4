"""
Utility Module for the Invoice Intake System.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Identifier and timestamp helpers
"""

from .logger import setup_logger, setup_logger_from_config, get_logger
from .helpers import ensure_directory, generate_id, utc_now, format_file_size

__all__ = [
    'setup_logger',
    'setup_logger_from_config',
    'get_logger',
    'ensure_directory',
    'generate_id',
    'utc_now',
    'format_file_size',
]
