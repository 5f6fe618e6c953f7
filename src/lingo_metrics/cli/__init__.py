"""CLI package for lingo_metrics.

This module provides the `lingo` command-line interface. All commands
delegate to the Dashboard facade, the services or ConfigManager, adding
only I/O formatting.
"""

from lingo_metrics.cli.main import app

__all__ = ["app"]
