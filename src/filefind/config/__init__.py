"""
Configuration management package for filefind.

This package provides configuration parsing, validation, and management
functionality for filefind.
"""

from ..errors import ConfigurationError
from .parser import (
    ConfigParser,
    ConfigParseResult,
    load_config,
    validate_config_file,
    create_config_template
)

__all__ = [
    'ConfigParser',
    'ConfigParseResult',
    'ConfigurationError',
    'load_config',
    'validate_config_file',
    'create_config_template'
]
