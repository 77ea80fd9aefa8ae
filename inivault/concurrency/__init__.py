"""
Locking primitives guarding the in-memory store.
"""

from .rwlock import ReaderWriterLock, UpgradeableGuard

__all__ = ['ReaderWriterLock', 'UpgradeableGuard']
