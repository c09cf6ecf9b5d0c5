"""CLI module for console-bridge.

This package provides the layered configuration loader and the Typer
command-line interface.
"""

from .config import (
    BridgeConfiguration,
    ConfigurationError,
    ConfigurationLoader,
    load_configuration,
    print_configuration,
    validate_configuration,
)

__all__ = [
    # Configuration
    'BridgeConfiguration',
    'ConfigurationError',
    'ConfigurationLoader',
    'load_configuration',
    'print_configuration',
    'validate_configuration',
]
