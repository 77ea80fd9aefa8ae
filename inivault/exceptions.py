"""
Exception hierarchy for inivault.

Each load/save failure is classified into one of these types before it is
reported on the error channel. Only DecryptionError and VaultDisposedError
ever reach a caller of a read path.
"""

from typing import Optional


class VaultError(Exception):
    """Base exception for all inivault errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class VaultIOError(VaultError):
    """Filesystem failure while reading or writing a store file."""
    pass


class IntegrityError(VaultError):
    """Checksum trailer missing or not matching the payload."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        stored: Optional[bytes] = None,
        computed: Optional[bytes] = None,
    ):
        super().__init__(message, path)
        self.stored = stored
        self.computed = computed


class DecryptionError(VaultError):
    """
    Ciphertext could not be decrypted with the configured key.

    Raised to the caller once the backup file has also failed, because
    returning an empty store would hide tampering or a wrong passphrase.
    """
    pass


class ValueConversionError(VaultError):
    """A stored string could not be converted to the requested type."""

    def __init__(self, message: str, value: str = "", target: Optional[type] = None):
        super().__init__(message)
        self.value = value
        self.target = target


class VaultDisposedError(VaultError, RuntimeError):
    """Operation attempted on a closed or deleted vault."""

    def __init__(self, message: str = "vault has been closed"):
        super().__init__(message)


class OptionsError(VaultError, ValueError):
    """Invalid vault options."""
    pass


__all__ = [
    'VaultError',
    'VaultIOError',
    'IntegrityError',
    'DecryptionError',
    'ValueConversionError',
    'VaultDisposedError',
    'OptionsError',
]
