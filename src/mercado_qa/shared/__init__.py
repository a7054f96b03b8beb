"""Shared modules for mercado-qa.

This module provides functionality used by both the CLI and the runner:
- Filesystem locations (config, reports)
- Logging configuration
"""

from .logging import configure_logging, get_logger
from .paths import CONFIG_FILE, MERCADO_QA_DIR, REPORTS_DIR, ensure_dirs, get_report_file

__all__ = [
    # Paths
    "MERCADO_QA_DIR",
    "CONFIG_FILE",
    "REPORTS_DIR",
    "ensure_dirs",
    "get_report_file",
    # Logging
    "configure_logging",
    "get_logger",
]
