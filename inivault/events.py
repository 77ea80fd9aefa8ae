"""
Vault event hooks.

Callbacks are invoked synchronously on the thread that caused the event,
after the store lock has been released. A callback that raises is logged
and skipped; it never breaks the operation that fired it.

Usage:
    vault.events.subscribe(VaultEvent.ERROR, lambda exc: print(exc))
    vault.events.subscribe(VaultEvent.KEY_CHANGED, on_changed)
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class VaultEvent(Enum):
    """Events emitted by a vault, with their callback arguments."""
    SAVED = "saved"                         # ()
    LOADED = "loaded"                       # ()
    AUTOSAVE = "autosave"                   # ()
    KEY_ADDED = "key_added"                 # (section, key, value)
    KEY_CHANGED = "key_changed"             # (section, key, value)
    KEY_RENAMED = "key_renamed"             # (section, old_key, new_key)
    KEY_REMOVED = "key_removed"             # (section, key)
    SECTION_ADDED = "section_added"         # (section,)
    SECTION_CHANGED = "section_changed"     # (section,)
    SECTION_REMOVED = "section_removed"     # (section,)
    DATA_CLEARED = "data_cleared"           # ()
    SEARCH_COMPLETED = "search_completed"   # (pattern, match_count)
    CHECKSUM_MISMATCH = "checksum_mismatch" # (stored, computed)
    ERROR = "error"                         # (exception,)


EventCallback = Callable[..., None]


class EventHooks:
    """Thread-safe registry of event callbacks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: Dict[VaultEvent, List[EventCallback]] = {}

    def subscribe(self, event: VaultEvent, callback: EventCallback) -> None:
        with self._lock:
            self._callbacks.setdefault(event, []).append(callback)

    def unsubscribe(self, event: VaultEvent, callback: EventCallback) -> None:
        with self._lock:
            callbacks = self._callbacks.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def has_subscribers(self, event: VaultEvent) -> bool:
        with self._lock:
            return bool(self._callbacks.get(event))

    def clear(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def emit(self, event: VaultEvent, *args) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(event, ()))

        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Callback for {event.value} raised: {e}", exc_info=True)


__all__ = ['VaultEvent', 'EventHooks', 'EventCallback']
