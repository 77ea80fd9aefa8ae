"""
Persistence Engine - crash-safe load/save of a vault file.

On-disk layout:
    [optional header][IV + ciphertext | UTF-8 text][optional SHA-256 trailer]

Save protocol:
1. Frame the serialized payload (header, encryption, checksum).
2. Write it to <path>.tmp and fsync.
3. If backups are on, hard-link the current primary to <path>.backup.tmp.
4. os.replace(<path>.tmp, <path>).
5. os.replace(<path>.backup.tmp, <path>.backup).

Each rename is atomic, so a crash leaves the primary either fully old or
fully new; at worst the backup is one generation stale.

Load protocol: primary first, backup on any failure. IO and integrity
failures are reported on the error channel and fall back to an empty store.
A decryption failure that the backup cannot recover is raised.
"""

import logging
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from inivault.codec import text_codec
from inivault.codec.integrity import IntegrityCodec
from inivault.codec.text_codec import StoreData
from inivault.constants import Framing, Permissions, Suffixes
from inivault.crypto.encryption import EncryptionCodec
from inivault.exceptions import (
    DecryptionError,
    IntegrityError,
    VaultError,
    VaultIOError,
)
from inivault.utils.error_handling import ErrorCategory, handle_error

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[VaultError], None]
ChecksumCallback = Callable[[bytes, bytes], None]


@dataclass
class LoadResult:
    """What a load produced and where it came from."""
    data: StoreData = field(default_factory=dict)
    source: Optional[Path] = None           # None means nothing usable on disk
    errors: List[VaultError] = field(default_factory=list)

    @property
    def from_backup(self) -> bool:
        return self.source is not None and self.source.name.endswith(Suffixes.BACKUP)


class _Absent(Exception):
    """Candidate file missing or empty; not an error."""


class PersistenceEngine:
    """
    Reads and writes one vault file and its backup.

    Load and save are serialized per engine; nothing here touches the
    in-memory store lock.
    """

    def __init__(
        self,
        path: Union[str, Path],
        integrity: Optional[IntegrityCodec] = None,
        encryption: Optional[EncryptionCodec] = None,
        write_header: bool = False,
        file_mode: int = Permissions.SECURE_FILE,
        on_error: Optional[ErrorCallback] = None,
        on_checksum_mismatch: Optional[ChecksumCallback] = None,
    ):
        self.path = Path(path)
        self.integrity = integrity or IntegrityCodec(enabled=True)
        self.encryption = encryption
        self.write_header = write_header
        self.file_mode = file_mode
        self.on_error = on_error
        self.on_checksum_mismatch = on_checksum_mismatch
        self._io_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + Suffixes.TEMP)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + Suffixes.BACKUP)

    @property
    def staging_path(self) -> Path:
        return self.path.with_name(self.path.name + Suffixes.BACKUP_STAGING)

    @property
    def encrypted(self) -> bool:
        return self.encryption is not None

    @property
    def header(self) -> bytes:
        return Framing.ENCRYPTED_HEADER if self.encrypted else Framing.PLAINTEXT_HEADER

    @property
    def minimum_size(self) -> int:
        """Smallest file that can hold the required framing."""
        size = self.integrity.trailer_size
        if self.encryption is not None:
            size += self.encryption.minimum_size
        return size

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def encode(self, payload: bytes) -> bytes:
        """Frame a serialized store for writing."""
        body = self.encryption.encrypt(payload) if self.encryption else payload
        if self.write_header:
            body = self.header + body
        return self.integrity.add_checksum(body)

    def decode(self, raw: bytes, source: Path) -> StoreData:
        """
        Validate and unframe file bytes.

        Raises:
            IntegrityError: short file or checksum mismatch
            DecryptionError: ciphertext does not decrypt with this key
        """
        if len(raw) < self.minimum_size:
            raise IntegrityError(
                f"File too short for framing ({len(raw)} < {self.minimum_size} bytes)",
                path=str(source),
            )

        result = self.integrity.validate(raw)
        if not result.valid:
            if result.stored is not None and self.on_checksum_mismatch:
                self._safe_callback(self.on_checksum_mismatch, result.stored, result.computed)
            raise IntegrityError(
                f"Integrity check failed: {result.reason}",
                path=str(source),
                stored=result.stored,
                computed=result.computed,
            )

        body = self._strip_header(result.payload)

        if self.encryption is not None:
            try:
                text = self.encryption.decrypt_text(body)
            except DecryptionError as e:
                e.path = str(source)
                raise
            return text_codec.parse_text(text)

        return text_codec.parse(body)

    def _strip_header(self, body: bytes) -> bytes:
        for header in (Framing.ENCRYPTED_HEADER, Framing.PLAINTEXT_HEADER):
            if body.startswith(header):
                return body[len(header):]
        return body

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def ensure_file(self) -> None:
        """Create the parent directory and an empty primary file if missing."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self.path.touch()
                os.chmod(self.path, self.file_mode)
                logger.debug(f"Created empty store file {self.path}")
        except OSError as e:
            self._report(
                VaultIOError(f"Could not create store file: {e}", path=str(self.path)),
                "create store file",
                cause=e,
            )

    def load(self) -> LoadResult:
        """
        Load the primary file, falling back to the backup.

        Raises:
            DecryptionError: neither file could be decrypted and at least
                one of them failed cryptographically
        """
        with self._io_lock:
            result = LoadResult()
            crypto_failure: Optional[DecryptionError] = None

            for candidate in (self.path, self.backup_path):
                try:
                    result.data = self._read_candidate(candidate)
                except _Absent:
                    continue
                except DecryptionError as e:
                    # reported only once we know whether the backup recovers
                    crypto_failure = crypto_failure or e
                    result.errors.append(e)
                    continue
                except VaultError as e:
                    result.errors.append(e)
                    self._report(e, "load store", path=str(candidate))
                    continue

                result.source = candidate
                if crypto_failure is not None:
                    self._report(crypto_failure, "decrypt store", path=crypto_failure.path)
                if candidate == self.backup_path:
                    logger.warning(f"Loaded store from backup {candidate}")
                else:
                    logger.debug(f"Loaded store from {candidate}")
                return result

            if crypto_failure is not None:
                handle_error(
                    crypto_failure, "decrypt store", ErrorCategory.CRYPTO,
                    additional_context={'path': crypto_failure.path},
                )
                raise crypto_failure

            if result.errors:
                logger.warning(f"No valid store file for {self.path}, starting empty")
            return result

    def _read_candidate(self, candidate: Path) -> StoreData:
        try:
            raw = candidate.read_bytes()
        except FileNotFoundError:
            raise _Absent()
        except OSError as e:
            raise VaultIOError(f"Could not read store file: {e}", path=str(candidate)) from e

        if not raw:
            raise _Absent()

        return self.decode(raw, candidate)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, payload: bytes, use_backup: bool = True) -> bool:
        """
        Frame payload and atomically replace the primary file.

        Returns False (after reporting on the error channel) if the write
        failed; the previous primary is left untouched in that case. Once
        the primary is replaced the save has succeeded, even if rotating
        the backup then fails (reported, backup left one generation stale).
        """
        framed = self.encode(payload)

        with self._io_lock:
            staged = False
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._write_temp(framed)

                if use_backup:
                    staged = self._stage_backup()

                os.replace(self.temp_path, self.path)

            except OSError as e:
                self._discard(self.temp_path)
                if staged:
                    self._discard(self.staging_path)
                self._report(
                    VaultIOError(f"Could not save store: {e}", path=str(self.path)),
                    "save store",
                    cause=e,
                )
                return False

            if staged:
                self._rotate_backup()

        logger.debug(f"Saved {len(framed)} bytes to {self.path}")
        return True

    def _write_temp(self, framed: bytes) -> None:
        with open(self.temp_path, 'wb') as f:
            f.write(framed)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(self.temp_path, self.file_mode)

    def _stage_backup(self) -> bool:
        """Pin the current primary's bytes at the staging path."""
        try:
            if self.path.stat().st_size == 0:
                return False
        except FileNotFoundError:
            return False

        self._discard(self.staging_path)
        try:
            os.link(self.path, self.staging_path)
        except OSError as e:
            logger.debug(f"Hard link unavailable ({e}), copying primary for backup")
            shutil.copy2(self.path, self.staging_path)
        return True

    def _rotate_backup(self) -> None:
        try:
            os.replace(self.staging_path, self.backup_path)
        except OSError as e:
            self._discard(self.staging_path)
            logger.warning(f"Saved {self.path} but could not update backup: {e}")
            self._report(
                VaultIOError(f"Could not update backup: {e}", path=str(self.backup_path)),
                "rotate backup",
                cause=e,
            )

    def _discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_file(self) -> None:
        with self._io_lock:
            self._discard(self.path)
            self._discard(self.temp_path)

    def delete_backup(self) -> None:
        with self._io_lock:
            self._discard(self.backup_path)
            self._discard(self.staging_path)

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def _report(self, error: VaultError, operation: str, cause: Optional[BaseException] = None, **context) -> None:
        if cause is not None and error.__cause__ is None:
            error.__cause__ = cause
        handle_error(error, operation, additional_context=context)
        if self.on_error:
            self._safe_callback(self.on_error, error)

    def _safe_callback(self, callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error callback raised: {e}", exc_info=True)


__all__ = ['PersistenceEngine', 'LoadResult']
