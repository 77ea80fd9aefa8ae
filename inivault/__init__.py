"""
inivault - Thread-safe, crash-safe, optionally encrypted INI-style store
"""

from .constants import (
    Framing,
    Suffixes,
    Crypto,
    Permissions,
    Version,
    KDF_ITERATIONS,
    SECURE_FILE_MODE,
)

from .exceptions import (
    VaultError,
    VaultIOError,
    IntegrityError,
    DecryptionError,
    ValueConversionError,
    VaultDisposedError,
    OptionsError,
)

from .config import VaultOptions, load_options, save_options
from .crypto import IdentityProvider, SystemIdentityProvider, StaticIdentityProvider
from .events import EventHooks, VaultEvent
from .vault import IniVault, VaultState
from .logging_config import setup_logging, get_logger, FeatureArea

__version__ = Version.PACKAGE_VERSION

__all__ = [
    'IniVault',
    'VaultState',
    'VaultOptions',
    'load_options',
    'save_options',
    'EventHooks',
    'VaultEvent',
    'IdentityProvider',
    'SystemIdentityProvider',
    'StaticIdentityProvider',
    'VaultError',
    'VaultIOError',
    'IntegrityError',
    'DecryptionError',
    'ValueConversionError',
    'VaultDisposedError',
    'OptionsError',
    'Framing',
    'Suffixes',
    'Crypto',
    'Permissions',
    'Version',
    'KDF_ITERATIONS',
    'SECURE_FILE_MODE',
    'setup_logging',
    'get_logger',
    'FeatureArea',
]
