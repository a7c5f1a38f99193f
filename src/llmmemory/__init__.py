# src/llmmemory/__init__.py
"""
llmmemory - Semantic memory storage for LLM applications.

Persists short text records (with free-form metadata and an optional
embedding vector) in named collections and retrieves the records most
relevant to a query, by cosine similarity when embeddings are available and
by word overlap otherwise. Two interchangeable backends share one contract:
an in-process volatile store and a Redis-backed persistent store.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import MemoryConfig, RedisConnectionConfig, VolatileStoreConfig, load_memory_config
from .exceptions import (
    LLMMemoryError,
    ConfigError,
    StorageError,
    MemoryStoreError,
    SerializationError,
)
from .logging_config import configure_logging, log_display
from .models import (
    BatchItemResult,
    BatchSaveResult,
    CollectionInfo,
    MemoryItem,
    MemoryQueryResult,
    MemoryRecord,
    MemoryStoreStats,
    ScoringMethod,
)
from .storage import (
    BaseMemoryStore,
    RedisMemoryStore,
    VolatileMemoryStore,
    cosine_similarity,
    create_memory_store,
    create_memory_store_from_environment,
    text_similarity,
)

try:
    __version__ = version("llmmemory")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"

__all__ = [
    "__version__",
    # Stores
    "BaseMemoryStore",
    "VolatileMemoryStore",
    "RedisMemoryStore",
    "create_memory_store",
    "create_memory_store_from_environment",
    # Scoring
    "cosine_similarity",
    "text_similarity",
    # Models
    "MemoryRecord",
    "MemoryQueryResult",
    "MemoryItem",
    "BatchItemResult",
    "BatchSaveResult",
    "CollectionInfo",
    "MemoryStoreStats",
    "ScoringMethod",
    # Configuration
    "MemoryConfig",
    "RedisConnectionConfig",
    "VolatileStoreConfig",
    "load_memory_config",
    "configure_logging",
    "log_display",
    # Exceptions
    "LLMMemoryError",
    "ConfigError",
    "StorageError",
    "MemoryStoreError",
    "SerializationError",
]
