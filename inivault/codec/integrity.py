"""
Integrity Codec - SHA-256 checksum trailer.

The trailer is the digest of every byte that precedes it, so it covers the
header and the ciphertext when those are present.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from inivault.constants import Framing

logger = logging.getLogger(__name__)


@dataclass
class ChecksumResult:
    """Outcome of validating a checksummed payload."""
    valid: bool
    payload: Optional[bytes] = None
    stored: Optional[bytes] = None
    computed: Optional[bytes] = None
    reason: str = ""


def compute_checksum(data: bytes) -> bytes:
    """Return the 32-byte SHA-256 digest of data."""
    return hashlib.sha256(data).digest()


class IntegrityCodec:
    """Appends and validates the checksum trailer."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @property
    def trailer_size(self) -> int:
        return Framing.CHECKSUM_SIZE if self.enabled else 0

    def add_checksum(self, data: bytes) -> bytes:
        if not self.enabled:
            return data
        return data + compute_checksum(data)

    def validate(self, data: bytes) -> ChecksumResult:
        """
        Split off and verify the trailer.

        Failures are returned, not raised, so the caller can fall back to
        the backup file.
        """
        if not self.enabled:
            return ChecksumResult(valid=True, payload=data)

        if len(data) < Framing.CHECKSUM_SIZE:
            return ChecksumResult(
                valid=False,
                reason=f"data too short for checksum ({len(data)} bytes)",
            )

        payload = data[:-Framing.CHECKSUM_SIZE]
        stored = data[-Framing.CHECKSUM_SIZE:]
        computed = compute_checksum(payload)

        if not hmac.compare_digest(stored, computed):
            return ChecksumResult(
                valid=False,
                stored=stored,
                computed=computed,
                reason="checksum mismatch",
            )

        return ChecksumResult(valid=True, payload=payload, stored=stored, computed=computed)


__all__ = ['IntegrityCodec', 'ChecksumResult', 'compute_checksum']
