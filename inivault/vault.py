"""
IniVault - thread-safe, optionally encrypted section/key store.

Provides:
- Section/key CRUD guarded by a reader/writer lock
- get_value() with race-free insertion of defaults (upgradeable read)
- Autosave every N mutations through the crash-safe persistence engine
- Backup fallback on load, checksum trailer, AES-256 encryption
- Event hooks for changes and for the error channel

Usage:
    with IniVault("settings.ini") as vault:
        vault.set_key("Window", "width", 1280)
        width = vault.get_value("Window", "width", 800)

    # machine-bound encryption
    vault = IniVault("secrets.ini", encryption=True)
    passphrase = vault.get_encryption_password()   # for migrating elsewhere

    # portable encryption
    vault = IniVault("secrets.ini", passphrase=passphrase)
"""

import asyncio
import dataclasses
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

from inivault.codec import text_codec
from inivault.codec.integrity import IntegrityCodec
from inivault.codec.text_codec import StoreData
from inivault.concurrency.rwlock import ReaderWriterLock
from inivault.config.options import VaultOptions
from inivault.conversion import format_value, try_parse_value
from inivault.crypto.encryption import EncryptionCodec, KeySource
from inivault.crypto.identity import IdentityProvider
from inivault.events import EventHooks, VaultEvent
from inivault.exceptions import (
    ValueConversionError,
    VaultDisposedError,
    VaultError,
)
from inivault.storage.persistence import PersistenceEngine
from inivault.utils.error_handling import ErrorCategory, handle_error

logger = logging.getLogger(__name__)

T = TypeVar('T')


class VaultState(Enum):
    """Lifecycle of a vault handle."""
    CONSTRUCTED = "constructed"
    LOADED = "loaded"
    DISPOSED = "disposed"       # terminal
    DELETED = "deleted"         # terminal


_TERMINAL_STATES = (VaultState.DISPOSED, VaultState.DELETED)


def _check_name(kind: str, name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"{kind} name cannot be empty")
    if '\n' in name or '\r' in name:
        raise ValueError(f"{kind} name cannot contain line breaks: {name!r}")
    name = name.strip()
    # names must survive a serialize/parse cycle unchanged
    if kind == "Section":
        if '[' in name or ']' in name:
            raise ValueError(f"Section name cannot contain brackets: {name!r}")
    else:
        if '=' in name:
            raise ValueError(f"Key name cannot contain '=': {name!r}")
        if name.startswith((text_codec.COMMENT_PREFIX, '[')):
            raise ValueError(f"Key name cannot start with {name[0]!r}: {name!r}")
    return name


class IniVault:
    """
    Persistent section/key store.

    All public methods are safe to call from multiple threads. Reads take
    the shared lock; mutations take the exclusive lock only while touching
    the in-memory store. File I/O and event callbacks run outside the lock.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        encryption: bool = False,
        passphrase: Optional[str] = None,
        options: Optional[VaultOptions] = None,
        identity_provider: Optional[IdentityProvider] = None,
        events: Optional[EventHooks] = None,
    ):
        """
        Open (or create) a vault.

        Args:
            path: Store file path; missing parent directories are created.
            encryption: Encrypt with a key derived from the current
                user/host/domain. The file is then unreadable elsewhere
                unless get_encryption_password() is exported.
            passphrase: Encrypt with a key derived from this passphrase.
                Takes precedence over encryption=True.
            options: Behaviour flags (defaults if omitted).
            identity_provider: Identity source for encryption=True.
            events: Pre-populated hooks, to observe errors during the
                initial load.

        Raises:
            ValueError: empty passphrase
            DecryptionError: neither the file nor its backup decrypts
        """
        self._options = dataclasses.replace(options or VaultOptions()).validate()
        self.events = events or EventHooks()
        self._lock = ReaderWriterLock()
        self._state_lock = threading.Lock()
        self._state = VaultState.CONSTRUCTED
        self._counter_lock = threading.Lock()
        self._mutation_count = 0
        # snapshot and write together so saves land in snapshot order
        self._save_lock = threading.Lock()
        self._data: StoreData = {}

        codec: Optional[EncryptionCodec] = None
        if passphrase is not None:
            if not passphrase:
                raise ValueError("Encryption passphrase cannot be empty")
            codec = EncryptionCodec.from_passphrase(passphrase, self._options.kdf_iterations)
        elif encryption:
            codec = EncryptionCodec.from_identity(identity_provider, self._options.kdf_iterations)

        self._engine = PersistenceEngine(
            path,
            integrity=IntegrityCodec(enabled=self._options.use_checksum),
            encryption=codec,
            write_header=self._options.write_header,
            file_mode=self._options.file_mode,
            on_error=self._emit_error,
            on_checksum_mismatch=self._emit_checksum_mismatch,
        )

        self._data = self._engine.load().data
        self._engine.ensure_file()
        self._state = VaultState.LOADED
        logger.debug(f"Opened vault {self.path} ({len(self._data)} sections)")
        self.events.emit(VaultEvent.LOADED)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._engine.path

    @property
    def backup_path(self) -> Path:
        return self._engine.backup_path

    @property
    def encrypted(self) -> bool:
        return self._engine.encrypted

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state in _TERMINAL_STATES

    @property
    def options(self) -> VaultOptions:
        return self._options

    @property
    def auto_save(self) -> bool:
        return self._options.auto_save

    @auto_save.setter
    def auto_save(self, value: bool) -> None:
        self._options.auto_save = bool(value)

    @property
    def auto_save_interval(self) -> int:
        return self._options.auto_save_interval

    @auto_save_interval.setter
    def auto_save_interval(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"auto_save_interval must be >= 0, got {value}")
        with self._counter_lock:
            self._options.auto_save_interval = value
            self._mutation_count = 0

    @property
    def auto_backup(self) -> bool:
        return self._options.auto_backup

    @auto_backup.setter
    def auto_backup(self, value: bool) -> None:
        self._options.auto_backup = bool(value)

    @property
    def auto_add(self) -> bool:
        return self._options.auto_add

    @auto_add.setter
    def auto_add(self, value: bool) -> None:
        self._options.auto_add = bool(value)

    @property
    def use_checksum(self) -> bool:
        return self._options.use_checksum

    @use_checksum.setter
    def use_checksum(self, value: bool) -> None:
        self._options.use_checksum = bool(value)
        self._engine.integrity.enabled = bool(value)

    @property
    def save_on_dispose(self) -> bool:
        return self._options.save_on_dispose

    @save_on_dispose.setter
    def save_on_dispose(self, value: bool) -> None:
        self._options.save_on_dispose = bool(value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> 'IniVault':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"IniVault({str(self.path)!r}, state={self._state.value}, encrypted={self.encrypted})"

    def _check_open(self) -> None:
        if self._state in _TERMINAL_STATES:
            raise VaultDisposedError(f"vault {self.path} is {self._state.value}")

    def _enter_terminal(self, state: VaultState) -> bool:
        with self._state_lock:
            if self._state in _TERMINAL_STATES:
                return False
            self._state = state
            return True

    def close(self) -> None:
        """Save (if save_on_dispose), clear memory and disable the handle."""
        with self._state_lock:
            if self._state in _TERMINAL_STATES:
                return
            if self._options.save_on_dispose:
                self._save()
            self._state = VaultState.DISPOSED

        with self._lock.write_lock():
            self._data.clear()
        self.events.emit(VaultEvent.DATA_CLEARED)
        logger.debug(f"Closed vault {self.path}")

    def delete(self) -> None:
        """Remove the file and its backup, clear memory, disable the handle."""
        if not self._enter_terminal(VaultState.DELETED):
            raise VaultDisposedError(f"vault {self.path} is {self._state.value}")
        self._engine.delete_file()
        self._engine.delete_backup()
        with self._lock.write_lock():
            self._data.clear()
        self.events.emit(VaultEvent.DATA_CLEARED)
        logger.info(f"Deleted vault {self.path}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _snapshot(self) -> bytes:
        with self._lock.read_lock():
            return text_codec.serialize(self._data)

    def _save(self) -> bool:
        with self._save_lock:
            ok = self._engine.save(self._snapshot(), use_backup=self._options.auto_backup)
        if ok:
            self.events.emit(VaultEvent.SAVED)
        return ok

    def save(self) -> bool:
        """
        Write the current contents to disk.

        Returns False if the write failed; the failure is reported on the
        error channel and the previous file stays intact.
        """
        self._check_open()
        return self._save()

    def reload(self) -> None:
        """
        Replace the in-memory contents with the file (or backup) contents.

        Raises:
            DecryptionError: neither the file nor its backup decrypts
        """
        self._check_open()
        result = self._engine.load()
        with self._lock.write_lock():
            self._data = result.data
        self.events.emit(VaultEvent.LOADED)

    def delete_file(self) -> None:
        """Remove the primary file; the in-memory contents are kept."""
        self._check_open()
        self._engine.delete_file()

    def delete_backup(self) -> None:
        self._check_open()
        self._engine.delete_backup()

    def _after_mutation(self) -> None:
        if not self._options.auto_save:
            return
        with self._counter_lock:
            interval = self._options.auto_save_interval
            self._mutation_count += 1
            due = interval <= 1 or self._mutation_count % interval == 0
        if due:
            self.events.emit(VaultEvent.AUTOSAVE)
            self._save()

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def _emit_error(self, error: VaultError) -> None:
        self.events.emit(VaultEvent.ERROR, error)

    def _emit_checksum_mismatch(self, stored: bytes, computed: bytes) -> None:
        self.events.emit(VaultEvent.CHECKSUM_MISMATCH, stored, computed)

    def _report_conversion(self, error: ValueConversionError) -> None:
        handle_error(error, "convert value", ErrorCategory.CONVERSION)
        self._emit_error(error)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def section_exists(self, section: str) -> bool:
        self._check_open()
        with self._lock.read_lock():
            return section in self._data

    def key_exists(self, section: str, key: str) -> bool:
        self._check_open()
        with self._lock.read_lock():
            return key in self._data.get(section, ())

    def get_sections(self) -> List[str]:
        self._check_open()
        with self._lock.read_lock():
            return list(self._data)

    def get_keys(self, section: str) -> List[str]:
        """Keys of a section, or an empty list if the section is absent."""
        self._check_open()
        with self._lock.read_lock():
            return list(self._data.get(section, ()))

    def get_section(self, section: str) -> Dict[str, str]:
        """Copy of a section's key/value pairs ({} if absent)."""
        self._check_open()
        with self._lock.read_lock():
            return dict(self._data.get(section, {}))

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        """Deep copy of the whole store."""
        self._check_open()
        with self._lock.read_lock():
            return {name: dict(section) for name, section in self._data.items()}

    def find_key_in_all_sections(self, key: str) -> Dict[str, str]:
        """Map of section name -> value for every section containing key."""
        self._check_open()
        with self._lock.read_lock():
            return {
                name: section[key]
                for name, section in self._data.items()
                if key in section
            }

    def search(self, pattern: str) -> List[Tuple[str, str, str]]:
        """Case-insensitive substring search over keys and values."""
        self._check_open()
        results: List[Tuple[str, str, str]] = []
        if pattern:
            needle = pattern.casefold()
            with self._lock.read_lock():
                for name, section in self._data.items():
                    for key, value in section.items():
                        if needle in key.casefold() or needle in value.casefold():
                            results.append((name, key, value))
        self.events.emit(VaultEvent.SEARCH_COMPLETED, pattern, len(results))
        return results

    def get_value(
        self,
        section: str,
        key: str,
        default: Optional[T] = None,
        value_type: Optional[Type[T]] = None,
    ) -> Optional[T]:
        """
        Read a value converted to value_type (or to the default's type).

        A missing key returns the default and, when auto_add is on and a
        default is given, stores it. Concurrent callers asking for the same
        missing key insert it once; everyone gets the first insert.
        An unconvertible value returns the default and is reported on the
        error channel.
        """
        self._check_open()
        if value_type is None and default is not None:
            value_type = type(default)
        default_text = format_value(default).strip() if default is not None else None

        added = False
        with self._lock.upgradeable_read_lock() as guard:
            raw = self._data.get(section, {}).get(key)
            if raw is None and default_text is not None and self._options.auto_add:
                with guard.upgrade():
                    # another writer may have inserted it since the check above
                    raw = self._data.get(section, {}).get(key)
                    if raw is None:
                        self._data.setdefault(section, {})[key] = default_text
                        raw = default_text
                        added = True

        if added:
            self.events.emit(VaultEvent.KEY_ADDED, section, key, default_text)
            self._after_mutation()

        if raw is None:
            return default
        if value_type is None or value_type is str:
            return raw
        return try_parse_value(raw, value_type, default, on_error=self._report_conversion)

    def get_value_clamp(
        self,
        section: str,
        key: str,
        min_value: T,
        max_value: T,
        default: Optional[T] = None,
    ) -> T:
        """get_value() clamped into [min_value, max_value]."""
        value_type = type(default) if default is not None else type(min_value)
        value = self.get_value(section, key, default, value_type=value_type)
        if value is None:
            return min_value
        if value < min_value:
            return min_value
        if value > max_value:
            return max_value
        return value

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_section(self, section: str) -> bool:
        """Create an empty section; False if it already exists."""
        self._check_open()
        section = _check_name("Section", section)
        with self._lock.write_lock():
            if section in self._data:
                return False
            self._data[section] = {}
        self.events.emit(VaultEvent.SECTION_ADDED, section)
        self._after_mutation()
        return True

    def add_key(self, section: str, key: str, value: Any) -> bool:
        """Store a value only if the key is absent; False if it existed."""
        self._check_open()
        section = _check_name("Section", section)
        key = _check_name("Key", key)
        text = self._to_text(value)
        with self._lock.write_lock():
            keys = self._data.setdefault(section, {})
            if key in keys:
                return False
            keys[key] = text
        self.events.emit(VaultEvent.KEY_ADDED, section, key, text)
        self._after_mutation()
        return True

    def set_key(self, section: str, key: str, value: Any) -> None:
        """Create or overwrite a value, creating the section if needed."""
        self._check_open()
        section = _check_name("Section", section)
        key = _check_name("Key", key)
        text = self._to_text(value)
        with self._lock.write_lock():
            keys = self._data.setdefault(section, {})
            existed = key in keys
            keys[key] = text
        event = VaultEvent.KEY_CHANGED if existed else VaultEvent.KEY_ADDED
        self.events.emit(event, section, key, text)
        self._after_mutation()

    def remove_key(self, section: str, key: str) -> bool:
        self._check_open()
        with self._lock.write_lock():
            keys = self._data.get(section)
            if keys is None or key not in keys:
                return False
            del keys[key]
        self.events.emit(VaultEvent.KEY_REMOVED, section, key)
        self.events.emit(VaultEvent.SECTION_CHANGED, section)
        self._after_mutation()
        return True

    def remove_section(self, section: str) -> bool:
        self._check_open()
        with self._lock.write_lock():
            if self._data.pop(section, None) is None:
                return False
        self.events.emit(VaultEvent.SECTION_REMOVED, section)
        self._after_mutation()
        return True

    def clear_section(self, section: str) -> bool:
        """Remove every key of a section, keeping the (now empty) section."""
        self._check_open()
        with self._lock.write_lock():
            keys = self._data.get(section)
            if keys is None:
                return False
            keys.clear()
        self.events.emit(VaultEvent.SECTION_CHANGED, section)
        self._after_mutation()
        return True

    def rename_key(self, section: str, old_key: str, new_key: str) -> bool:
        """Move a value to a new key name, overwriting new_key if present."""
        self._check_open()
        new_key = _check_name("Key", new_key)
        with self._lock.write_lock():
            keys = self._data.get(section)
            if keys is None or old_key not in keys or old_key == new_key:
                return False
            keys[new_key] = keys.pop(old_key)
        self.events.emit(VaultEvent.KEY_RENAMED, section, old_key, new_key)
        self._after_mutation()
        return True

    def rename_section(self, old_section: str, new_section: str) -> bool:
        """Rename a section in place; False if old is absent or new exists."""
        self._check_open()
        new_section = _check_name("Section", new_section)
        with self._lock.write_lock():
            if old_section not in self._data or new_section in self._data:
                return False
            self._data = {
                (new_section if name == old_section else name): keys
                for name, keys in self._data.items()
            }
        self.events.emit(VaultEvent.SECTION_CHANGED, old_section)
        self._after_mutation()
        return True

    def clear(self) -> None:
        """Drop all sections from memory. The file changes on the next save."""
        self._check_open()
        with self._lock.write_lock():
            self._data.clear()
        self.events.emit(VaultEvent.DATA_CLEARED)

    def _to_text(self, value: Any) -> str:
        text = value if isinstance(value, str) else format_value(value)
        if '\n' in text or '\r' in text:
            raise ValueError("Values cannot contain line breaks")
        return text.strip()

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def get_encryption_password(self) -> Optional[str]:
        """
        Machine-bound passphrase for migrating an auto-encrypted vault.

        Open the file elsewhere with IniVault(path, passphrase=...). Returns
        None when encryption is off or a caller passphrase is in use (it is
        not retained).
        """
        self._check_open()
        codec = self._engine.encryption
        if codec is None:
            return None
        if codec.source is KeySource.PASSPHRASE:
            logger.info("Vault uses a caller passphrase; it is not retained")
            return None
        return codec.exportable_passphrase

    # ------------------------------------------------------------------
    # Async wrappers
    # ------------------------------------------------------------------

    async def save_async(self) -> bool:
        return await asyncio.to_thread(self.save)

    async def reload_async(self) -> None:
        await asyncio.to_thread(self.reload)

    async def get_value_async(
        self,
        section: str,
        key: str,
        default: Optional[T] = None,
        value_type: Optional[Type[T]] = None,
    ) -> Optional[T]:
        return await asyncio.to_thread(self.get_value, section, key, default, value_type)

    async def get_value_clamp_async(
        self,
        section: str,
        key: str,
        min_value: T,
        max_value: T,
        default: Optional[T] = None,
    ) -> T:
        return await asyncio.to_thread(self.get_value_clamp, section, key, min_value, max_value, default)

    async def set_key_async(self, section: str, key: str, value: Any) -> None:
        await asyncio.to_thread(self.set_key, section, key, value)

    async def add_key_async(self, section: str, key: str, value: Any) -> bool:
        return await asyncio.to_thread(self.add_key, section, key, value)

    async def add_section_async(self, section: str) -> bool:
        return await asyncio.to_thread(self.add_section, section)

    async def section_exists_async(self, section: str) -> bool:
        return await asyncio.to_thread(self.section_exists, section)

    async def key_exists_async(self, section: str, key: str) -> bool:
        return await asyncio.to_thread(self.key_exists, section, key)

    async def get_sections_async(self) -> List[str]:
        return await asyncio.to_thread(self.get_sections)

    async def get_keys_async(self, section: str) -> List[str]:
        return await asyncio.to_thread(self.get_keys, section)

    async def remove_key_async(self, section: str, key: str) -> bool:
        return await asyncio.to_thread(self.remove_key, section, key)

    async def remove_section_async(self, section: str) -> bool:
        return await asyncio.to_thread(self.remove_section, section)

    async def clear_section_async(self, section: str) -> bool:
        return await asyncio.to_thread(self.clear_section, section)

    async def rename_key_async(self, section: str, old_key: str, new_key: str) -> bool:
        return await asyncio.to_thread(self.rename_key, section, old_key, new_key)

    async def rename_section_async(self, old_section: str, new_section: str) -> bool:
        return await asyncio.to_thread(self.rename_section, old_section, new_section)

    async def delete_file_async(self) -> None:
        await asyncio.to_thread(self.delete_file)

    async def delete_async(self) -> None:
        await asyncio.to_thread(self.delete)


__all__ = ['IniVault', 'VaultState']
