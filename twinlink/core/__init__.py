"""
Core module - Configuration and cross-cutting concerns.

This module provides:
- config.py         : Environment-based configuration management
- logging_config.py : Centralized logging setup
- exceptions.py     : Error taxonomy
- results.py        : Tagged results returned by public operations
"""
from twinlink.core.config import Settings, get_settings
from twinlink.core.exceptions import ErrorKind, TwinLinkError
from twinlink.core.logging_config import get_logger, setup_logging
from twinlink.core.results import Result

__all__ = [
    "ErrorKind",
    "Result",
    "Settings",
    "TwinLinkError",
    "get_logger",
    "get_settings",
    "setup_logging",
]
