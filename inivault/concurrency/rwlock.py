"""
Reader/writer lock with an upgradeable read mode.

- Any number of readers may hold the lock together.
- One writer excludes everyone.
- One upgradeable reader may coexist with plain readers and later escalate
  to exclusive access without releasing its hold.

Escalation does not make the earlier read current: after upgrade() the
caller must re-check whatever it read, because a writer may have finished
between its check and its own escalation.

Waiting writers block new readers so a steady stream of readers cannot
starve them. The lock is not reentrant.

Usage:
    lock = ReaderWriterLock()

    with lock.read_lock():
        value = data.get(key)

    with lock.upgradeable_read_lock() as guard:
        if key not in data:
            with guard.upgrade():
                if key not in data:
                    data[key] = default
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class ReaderWriterLock:
    """Shared/exclusive lock built on threading.Condition."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        self._upgradeable_held = False
        # serializes upgradeable holders against each other
        self._upgrade_gate = threading.Lock()

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() without matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    # ------------------------------------------------------------------
    # Exclusive
    # ------------------------------------------------------------------

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers or self._upgradeable_held:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() without matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Upgradeable
    # ------------------------------------------------------------------

    def acquire_upgradeable(self) -> None:
        self._upgrade_gate.acquire()
        try:
            with self._cond:
                while self._writer:
                    self._cond.wait()
                self._upgradeable_held = True
        except BaseException:
            self._upgrade_gate.release()
            raise

    def release_upgradeable(self) -> None:
        with self._cond:
            if not self._upgradeable_held:
                raise RuntimeError("release_upgradeable() without matching acquire")
            self._upgradeable_held = False
            self._cond.notify_all()
        self._upgrade_gate.release()

    def _escalate(self) -> None:
        # Called by the upgradeable holder; its own hold does not block it.
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def _deescalate(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Context managers
    # ------------------------------------------------------------------

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @contextmanager
    def upgradeable_read_lock(self) -> Iterator['UpgradeableGuard']:
        self.acquire_upgradeable()
        try:
            yield UpgradeableGuard(self)
        finally:
            self.release_upgradeable()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def reader_count(self) -> int:
        with self._cond:
            return self._readers

    @property
    def write_locked(self) -> bool:
        with self._cond:
            return self._writer


class UpgradeableGuard:
    """Handle given to an upgradeable reader for escalating to a writer."""

    def __init__(self, lock: ReaderWriterLock):
        self._lock = lock
        self.upgraded = False

    @contextmanager
    def upgrade(self) -> Iterator[None]:
        if self.upgraded:
            raise RuntimeError("upgradeable lock is already escalated")
        self._lock._escalate()
        self.upgraded = True
        try:
            yield
        finally:
            self.upgraded = False
            self._lock._deescalate()


__all__ = ['ReaderWriterLock', 'UpgradeableGuard']
