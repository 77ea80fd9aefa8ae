"""
CLI Module for inivault

Provides command-line tools for working with store files:
- inivaultctl: inspect and edit a store

Usage:
    python -m inivault.cli.inivaultctl settings.ini sections
    python -m inivault.cli.inivaultctl settings.ini set Window width 1280
"""

from .inivaultctl import build_parser, main as inivaultctl_main

__all__ = [
    'build_parser',
    'inivaultctl_main',
]
