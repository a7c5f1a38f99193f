# src/llmmemory/storage/manager.py
"""
Memory store factory for llmmemory.

Selects and constructs a memory store backend from configuration. The caller
owns the returned store; nothing here keeps a global instance.
"""

import logging
from typing import Any, Dict, Optional, Type, Union

from ..config.memory_config import MemoryConfig, load_memory_config
from ..exceptions import ConfigError
from ..logging_config import configure_logging, log_display
from .base_memory import BaseMemoryStore
from .redis_memory import RedisMemoryStore
from .volatile_memory import VolatileMemoryStore

logger = logging.getLogger(__name__)

# --- Mapping from config backend string to class ---
MEMORY_STORE_MAP: Dict[str, Type[BaseMemoryStore]] = {
    "volatile": VolatileMemoryStore,
    "redis": RedisMemoryStore,
}
# --- End Mapping ---


def create_memory_store(
    config: Optional[Union[MemoryConfig, Dict[str, Any]]] = None,
    **overrides: Any,
) -> BaseMemoryStore:
    """
    Create the memory store selected by configuration.

    Args:
        config: A MemoryConfig, a configuration dictionary (optionally with a
            top-level ``memory`` key), or None for defaults (volatile).
        **overrides: Top-level configuration overrides, e.g. ``backend="redis"``.

    A non-empty ``logging`` section is applied with configure_logging()
    before the store is built.

    Returns:
        A ready-to-use memory store.

    Raises:
        ConfigError: If the configuration is invalid or names an unknown backend.
        MemoryStoreError: If the backend client cannot be created.
    """
    if isinstance(config, MemoryConfig) and not overrides:
        memory_config = config
    else:
        if isinstance(config, MemoryConfig):
            config = config.model_dump()
        section = dict((config or {}).get("memory", config or {}))
        section.update(overrides)
        memory_config = load_memory_config(config_dict=section, apply_env=False)

    backend = memory_config.backend.lower()
    store_cls = MEMORY_STORE_MAP.get(backend)
    if store_cls is None:
        raise ConfigError(f"Unsupported memory backend configured: '{backend}'. "
                          f"Available backends: {list(MEMORY_STORE_MAP.keys())}")

    if memory_config.logging:
        configure_logging(config=memory_config.logging, force_reconfigure=True)

    if store_cls is RedisMemoryStore:
        store: BaseMemoryStore = RedisMemoryStore(config=memory_config.redis)
    else:
        store = VolatileMemoryStore(config=memory_config.volatile)

    log_display(logger, logging.INFO, "Memory store backend '%s' ready.", backend)
    return store


def create_memory_store_from_environment() -> BaseMemoryStore:
    """
    Create the memory store described by environment variables.

    ``LLMMEMORY_BACKEND`` selects the backend (volatile by default);
    Redis connection settings come from ``REDIS_*``/``LLMMEMORY_REDIS_*``.
    """
    return create_memory_store(load_memory_config(apply_env=True))
