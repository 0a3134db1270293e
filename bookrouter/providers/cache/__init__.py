"""Cache providers.

MemoryCacheProvider memoizes query embeddings and probe results in-process.
For multi-worker deployments, swap in a network-backed adapter implementing
ICacheProvider without touching routing logic.
"""

from bookrouter.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
