"""
Command-line interface for probinfer.
"""

from .main import app, cli_main

__all__ = ["app", "cli_main"]
