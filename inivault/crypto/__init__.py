"""
Cryptography for inivault: key derivation and payload encryption.
"""

from .identity import IdentityProvider, SystemIdentityProvider, StaticIdentityProvider
from .encryption import EncryptionCodec, KeySource, derive_key, derive_identity_passphrase

__all__ = [
    'IdentityProvider',
    'SystemIdentityProvider',
    'StaticIdentityProvider',
    'EncryptionCodec',
    'KeySource',
    'derive_key',
    'derive_identity_passphrase',
]
