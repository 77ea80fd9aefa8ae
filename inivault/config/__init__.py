"""
Configuration for inivault vault handles.

Options can come from code, a YAML file or INIVAULT_* environment
variables.
"""

from .options import VaultOptions, load_options, save_options

__all__ = [
    'VaultOptions',
    'load_options',
    'save_options',
]
