from .base import BaseSource
from .cache import MemorySourceCache, PersistentSourceCache, create_cache
from .sources import CallableSource, StaticSource

__all__ = [
    "BaseSource",
    "MemorySourceCache",
    "PersistentSourceCache",
    "create_cache",
    "CallableSource",
    "StaticSource",
]
