# src/llmmemory/storage/__init__.py
"""
Storage backends for the llmmemory library.

This package holds the memory store contract, the shared relevance scorer,
and the two interchangeable backends: a process-local volatile store and a
Redis-backed persistent store.
"""

# Import key storage components for easier access
from .base_memory import BaseMemoryStore
from .manager import MEMORY_STORE_MAP, create_memory_store, create_memory_store_from_environment
from .scoring import cosine_similarity, rank_results, relevance_score, text_similarity, tokenize

# Import concrete implementations
from .volatile_memory import VolatileMemoryStore, create_volatile_store
from .redis_memory import RedisMemoryStore

__all__ = [
    "BaseMemoryStore",
    "MEMORY_STORE_MAP",
    "create_memory_store",
    "create_memory_store_from_environment",
    "cosine_similarity",
    "rank_results",
    "relevance_score",
    "text_similarity",
    "tokenize",
    "VolatileMemoryStore",
    "create_volatile_store",
    "RedisMemoryStore",
]
