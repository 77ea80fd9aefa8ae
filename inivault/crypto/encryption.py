"""
Encryption Codec - AES-256-CBC with a random IV per save.

Provides:
- PBKDF2-HMAC-SHA256 key derivation from a caller passphrase
- Deterministic machine-bound passphrase derived from an IdentityProvider
- IV || ciphertext framing with PKCS7 padding

A wrong key almost always shows up as a padding error. decrypt_text() also
requires the plaintext to be valid UTF-8, which catches the rare wrong-key
result that happens to end in valid padding.
"""

import hashlib
import hmac
import logging
import secrets
from enum import Enum
from typing import Optional

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from inivault.constants import Crypto, Framing
from inivault.crypto.identity import IdentityProvider, SystemIdentityProvider
from inivault.exceptions import DecryptionError

logger = logging.getLogger(__name__)


class KeySource(Enum):
    """Where the encryption key came from."""
    PASSPHRASE = "passphrase"   # supplied by the caller
    IDENTITY = "identity"       # derived from user/host/domain


def _pbkdf2(secret: bytes, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=Crypto.KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def derive_key(passphrase: str, iterations: int = Crypto.KDF_ITERATIONS) -> bytes:
    """Derive the 32-byte AES key for a passphrase."""
    if not passphrase:
        raise ValueError("Encryption passphrase cannot be empty")
    return _pbkdf2(passphrase.encode(Framing.ENCODING), Crypto.KEY_SALT, iterations)


def derive_identity_passphrase(
    provider: IdentityProvider,
    iterations: int = Crypto.KDF_ITERATIONS,
    length: int = Crypto.PASSPHRASE_LENGTH,
) -> str:
    """
    Derive the machine-bound passphrase for an identity.

    The result is reproducible from the identity alone, so nothing has to
    be stored. It is the value handed out for migrating a vault to another
    machine.
    """
    seed = provider.seed()
    salt = hashlib.sha256(provider.salt_seed().encode(Framing.ENCODING)).digest()
    salt = salt[:Crypto.IDENTITY_SALT_SIZE]

    stretched = _pbkdf2(seed.encode(Framing.ENCODING), salt, iterations)
    final_seed = hmac.new(
        stretched, f"{seed}{length}".encode(Framing.ENCODING), hashlib.sha256
    ).digest()

    alphabet = Crypto.PASSPHRASE_ALPHABET
    return ''.join(
        alphabet[(final_seed[i % len(final_seed)] + i * 17) % len(alphabet)]
        for i in range(length)
    )


class EncryptionCodec:
    """
    Encrypts and decrypts store payloads.

    Build one with from_passphrase() or from_identity(); the constructor
    takes a raw 32-byte key.
    """

    def __init__(
        self,
        key: bytes,
        source: KeySource = KeySource.PASSPHRASE,
        derived_passphrase: Optional[str] = None,
    ):
        if len(key) != Crypto.KEY_SIZE:
            raise ValueError(f"Encryption key must be {Crypto.KEY_SIZE} bytes, got {len(key)}")
        self._key = key
        self.source = source
        self._derived_passphrase = derived_passphrase

    @classmethod
    def from_passphrase(
        cls,
        passphrase: str,
        iterations: int = Crypto.KDF_ITERATIONS,
    ) -> 'EncryptionCodec':
        return cls(derive_key(passphrase, iterations), KeySource.PASSPHRASE)

    @classmethod
    def from_identity(
        cls,
        provider: Optional[IdentityProvider] = None,
        iterations: int = Crypto.KDF_ITERATIONS,
    ) -> 'EncryptionCodec':
        provider = provider or SystemIdentityProvider()
        passphrase = derive_identity_passphrase(provider, iterations)
        return cls(derive_key(passphrase, iterations), KeySource.IDENTITY, passphrase)

    @property
    def exportable_passphrase(self) -> Optional[str]:
        """The machine-bound passphrase, or None for caller passphrases."""
        if self.source is KeySource.IDENTITY:
            return self._derived_passphrase
        return None

    @property
    def minimum_size(self) -> int:
        """Smallest valid encrypted payload: IV plus one padded block."""
        return Framing.IV_SIZE + Framing.BLOCK_SIZE

    def encrypt(self, plaintext: bytes) -> bytes:
        """Return IV || AES-256-CBC(plaintext) with a fresh random IV."""
        iv = secrets.token_bytes(Framing.IV_SIZE)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, data: bytes) -> bytes:
        """
        Split off the IV and decrypt the remainder.

        CBC has no authentication, so a wrong key is only caught when its
        output has invalid padding (roughly 1 in 256 keys slips through).
        Use decrypt_text() for store payloads; it also rejects output that
        is not UTF-8.

        Raises:
            DecryptionError: bad length or bad padding
        """
        if len(data) < self.minimum_size:
            raise DecryptionError(f"Encrypted payload too short ({len(data)} bytes)")

        iv = data[:Framing.IV_SIZE]
        ciphertext = data[Framing.IV_SIZE:]
        if len(ciphertext) % Framing.BLOCK_SIZE:
            raise DecryptionError("Ciphertext is not a whole number of blocks")

        try:
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionError(
                "Failed to decrypt store. Invalid encryption key or corrupted data."
            ) from e

    def decrypt_text(self, data: bytes) -> str:
        """Decrypt and decode as UTF-8; undecodable output is a key failure."""
        plaintext = self.decrypt(data)
        try:
            return plaintext.decode(Framing.ENCODING)
        except UnicodeDecodeError as e:
            raise DecryptionError(
                "Decrypted store is not valid text. Invalid encryption key or corrupted data."
            ) from e


__all__ = [
    'EncryptionCodec',
    'KeySource',
    'derive_key',
    'derive_identity_passphrase',
]
