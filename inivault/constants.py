"""
Centralized Constants Module for inivault.

This module consolidates the framing sizes, file suffixes and cryptographic
parameters used by the codecs and the persistence engine so that the on-disk
format is defined in exactly one place.

Usage:
    from inivault.constants import Framing, Crypto, Suffixes

    if len(data) < Framing.CHECKSUM_SIZE:
        ...
"""

import logging
import os
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == 'win32'

ENV_PREFIX = "INIVAULT_"


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Values outside the given bounds, or rejected by the validator, are
    logged and replaced with the default.

    Args:
        env_var: Environment variable name (will be prefixed with INIVAULT_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)

        if min_value is not None and converted < min_value:
            logger.warning(
                f"{full_env_var}={env_value} below minimum {min_value}, using default"
            )
            return default
        if max_value is not None and converted > max_value:
            logger.warning(
                f"{full_env_var}={env_value} above maximum {max_value}, using default"
            )
            return default

        if validator is not None and not validator(converted):
            logger.warning(f"{full_env_var}={env_value} failed validation, using default")
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value (true/false, yes/no, on/off, 1/0)."""
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# =============================================================================
# ON-DISK FRAMING
# =============================================================================

@dataclass(frozen=True)
class Framing:
    """
    Fixed field sizes of the on-disk layout.

    [optional header][IV + ciphertext | plaintext][optional checksum]
    """
    CHECKSUM_SIZE: int = 32             # SHA-256 digest trailer
    IV_SIZE: int = 16                   # AES block-sized IV
    BLOCK_SIZE: int = 16                # AES block size in bytes
    ENCODING: str = "utf-8"

    PLAINTEXT_HEADER: bytes = b"; inivault store v1 - do not edit\n"
    ENCRYPTED_HEADER: bytes = b"; inivault encrypted store v1 - do not edit\n"


@dataclass(frozen=True)
class Suffixes:
    """File name suffixes appended to the primary path."""
    TEMP: str = ".tmp"
    BACKUP: str = ".backup"
    BACKUP_STAGING: str = ".backup.tmp"


# =============================================================================
# CRYPTOGRAPHIC PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class Crypto:
    """
    Cryptographic parameters.

    Changing any of these values changes the derived key, so files written
    with the old values become unreadable.
    """
    KEY_SIZE: int = 32                  # AES-256
    KDF_ITERATIONS_DEFAULT: int = 100000
    KDF_ITERATIONS_MIN: int = 1000
    KDF_ITERATIONS: int = _env_override(
        "KDF_ITERATIONS", 100000, int, min_value=1000, max_value=10_000_000
    )

    # Salt fed to PBKDF2 when deriving a key from a passphrase. No per-file
    # salt is stored, so it has to be constant.
    KEY_SALT: bytes = b"inivault/aes-256-cbc/v1"

    # Auto-derived passphrase
    PASSPHRASE_LENGTH: int = 16
    PASSPHRASE_ALPHABET: str = (
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
        "!@#$%^&*()_+-=[]{}|;:,.<>?"
    )
    IDENTITY_SALT_SIZE: int = 16


class Permissions(IntEnum):
    """File permission modes used for the store files."""
    OWNER_READ_WRITE = 0o600            # rw-------
    SECURE_FILE = 0o600
    STANDARD_FILE = 0o644               # rw-r--r--


@dataclass(frozen=True)
class Version:
    """Version and metadata constants."""
    PACKAGE_VERSION: str = "1.0.0"
    FORMAT_VERSION: str = "1"


KDF_ITERATIONS = Crypto.KDF_ITERATIONS
SECURE_FILE_MODE = Permissions.SECURE_FILE


__all__ = [
    'Framing',
    'Suffixes',
    'Crypto',
    'Permissions',
    'Version',
    'ENV_PREFIX',
    'IS_WINDOWS',
    'KDF_ITERATIONS',
    'SECURE_FILE_MODE',
    'parse_bool',
]
