"""
CLI module for rulesync.
"""

from rulesync.cli.main import cli

__all__ = ["cli"]
