"""
Storage for inivault: crash-safe load/save with backup fallback.
"""

from .persistence import PersistenceEngine, LoadResult

__all__ = ['PersistenceEngine', 'LoadResult']
