# src/llmmemory/config/__init__.py
"""
Configuration module for the llmmemory library.

Configuration files:
    - A TOML file with a ``[memory]`` table, passed to load_memory_config()

Environment variables:
    - Prefix: LLMMEMORY_ (e.g. LLMMEMORY_BACKEND, LLMMEMORY_REDIS_HOST)
    - REDIS_URL / REDIS_HOST / REDIS_PORT / REDIS_PASSWORD / REDIS_DB
"""

from .memory_config import (
    MemoryConfig,
    RedisConnectionConfig,
    VolatileStoreConfig,
    load_memory_config,
)

__all__ = [
    "MemoryConfig",
    "RedisConnectionConfig",
    "VolatileStoreConfig",
    "load_memory_config",
]
