"""
Filmflow storage.
"""

from .base import RelationalStore
from .memory_store import InMemoryStore

__all__ = ['RelationalStore', 'InMemoryStore']
