# src/llmmemory/storage/volatile_memory.py
"""
Volatile Memory Store - In-process storage for memory collections.

This module provides a thread-safe in-memory implementation of
:class:`~llmmemory.storage.base_memory.BaseMemoryStore`. All collections and
records live in a dictionary owned by the store instance, so their lifetime
is bound to the instance (and the host process).

Key Features:
- Thread-safe with a single RLock per store (writers block readers)
- O(1) point lookups and writes
- O(n) exhaustive relevance and vector scans (no secondary index)
- Records returned by value, so callers cannot mutate stored state

Usage:
    store = VolatileMemoryStore()

    store.save_information("docs", "a", "the cat sat", {"source": "notes"})
    store.save_information("docs", "b", "a dog ran")

    for result in store.get_relevant("docs", "cat", limit=2):
        print(result.id, result.relevance)
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..config.memory_config import VolatileStoreConfig
from ..models import (CollectionInfo, MemoryQueryResult, MemoryRecord,
                      MemoryStoreStats, ScoringMethod, utc_now)
from .base_memory import BaseMemoryStore
from .scoring import cosine_similarity, rank_results, relevance_score

logger = logging.getLogger(__name__)


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class _CollectionState:
    """Internal state of one collection.

    Attributes:
        name: Collection name.
        created_at: When the collection was created (explicitly or implicitly).
        metadata: Collection-level metadata supplied at creation.
        records: Records keyed by id, in insertion order.
    """

    name: str
    created_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)
    records: dict[str, MemoryRecord] = field(default_factory=dict)


# =============================================================================
# VOLATILE MEMORY STORE
# =============================================================================


class VolatileMemoryStore(BaseMemoryStore):
    """In-memory memory store.

    The store owns all of its collections; two instances never share state.
    A single RLock guards the collection map. Relevance queries take a
    snapshot of the collection under the lock and score it outside, so a
    long scan does not hold up writers.

    Example:
        store = VolatileMemoryStore()
        store.create_collection("kb", {"owner": "docs-team"})
        store.save_information("kb", "v1", "vector one", embedding=[1.0, 0.0])

        hits = store.search_by_vector("kb", [1.0, 0.0], limit=1)

    Attributes:
        copy_on_read: Return deep copies of stored records.
    """

    backend_name = "volatile"

    def __init__(
        self,
        copy_on_read: bool = True,
        config: VolatileStoreConfig | None = None,
    ) -> None:
        """Initialize the volatile memory store.

        Args:
            copy_on_read: Return deep copies of records from reads. Disable
                only when callers treat results as read-only.
            config: Optional configuration object (overrides other params).
        """
        if config is not None:
            copy_on_read = config.copy_on_read

        self.copy_on_read = copy_on_read

        self._collections: dict[str, _CollectionState] = {}
        self._lock = threading.RLock()

        logger.debug(f"VolatileMemoryStore initialized: copy_on_read={copy_on_read}")

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _copy(self, record: MemoryRecord) -> MemoryRecord:
        return record.model_copy(deep=True) if self.copy_on_read else record

    def _snapshot(self, collection: str) -> list[MemoryRecord] | None:
        """Current records of a collection, or None if it does not exist."""
        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return None
            return list(state.records.values())

    def _estimate_size(self) -> int:
        """Approximate size of the stored data in bytes (serialized JSON length)."""
        total = 0
        with self._lock:
            for state in self._collections.values():
                for record in state.records.values():
                    total += len(record.model_dump_json())
                total += len(json.dumps(state.metadata, default=str))
        return total

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def save_information(
        self,
        collection: str,
        id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        embedding: Optional[Sequence[float]] = None,
    ) -> bool:
        try:
            record = MemoryRecord(
                id=id,
                text=text,
                metadata=copy.deepcopy(dict(metadata or {})),
                embedding=list(embedding) if embedding is not None else [],
            )
            # Keep the same contract as the persistent backend: metadata must
            # survive a JSON round trip.
            json.dumps(record.metadata)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Rejected record '{id}' for collection '{collection}': {e}")
            return False

        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                state = _CollectionState(name=collection)
                self._collections[collection] = state
                logger.debug(f"Implicitly created collection '{collection}'")
            state.records[id] = record

        logger.debug(f"Saved record '{id}' into collection '{collection}'")
        return True

    def get_information(self, collection: str, id: str) -> Optional[MemoryRecord]:
        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return None
            record = state.records.get(id)
            return self._copy(record) if record is not None else None

    def get_relevant(
        self,
        collection: str,
        query: str,
        limit: int = 10,
        min_relevance_score: float = 0.0,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[MemoryQueryResult]:
        records = self._snapshot(collection)
        if records is None:
            return []

        results = []
        for record in records:
            score, method = relevance_score(query, record.text, query_embedding, record.embedding)
            if score >= min_relevance_score:
                results.append(MemoryQueryResult.from_record(record, score, method))

        ranked = rank_results(results, limit, min_relevance_score)
        logger.debug(
            f"get_relevant on '{collection}': scanned {len(records)} records, returning {len(ranked)}"
        )
        return ranked

    def remove_information(self, collection: str, id: str) -> bool:
        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return False
            removed = state.records.pop(id, None)

        if removed is None:
            return False
        logger.debug(f"Removed record '{id}' from collection '{collection}'")
        return True

    def create_collection(self, collection: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        try:
            collection_metadata = copy.deepcopy(dict(metadata or {}))
            json.dumps(collection_metadata)
        except (TypeError, ValueError) as e:
            logger.error(f"Rejected metadata for collection '{collection}': {e}")
            return False

        with self._lock:
            if collection in self._collections:
                return False
            self._collections[collection] = _CollectionState(name=collection, metadata=collection_metadata)

        logger.debug(f"Created collection '{collection}'")
        return True

    def remove_collection(self, collection: str) -> bool:
        with self._lock:
            state = self._collections.pop(collection, None)

        if state is None:
            return False
        logger.debug(f"Removed collection '{collection}' ({len(state.records)} records)")
        return True

    def does_collection_exist(self, collection: str) -> bool:
        with self._lock:
            return collection in self._collections

    def get_collections(self) -> List[str]:
        with self._lock:
            return list(self._collections.keys())

    def get_information_count(self, collection: str) -> int:
        with self._lock:
            state = self._collections.get(collection)
            return len(state.records) if state is not None else 0

    def search_by_vector(
        self,
        collection: str,
        embedding: Sequence[float],
        limit: int = 10,
        min_score: float = 0.0,
    ) -> List[MemoryQueryResult]:
        records = self._snapshot(collection)
        if records is None:
            return []

        results = []
        for record in records:
            if not record.embedding:
                continue
            similarity = cosine_similarity(embedding, record.embedding)
            if similarity >= min_score:
                results.append(MemoryQueryResult.from_record(record, similarity, ScoringMethod.COSINE))

        return rank_results(results, limit, min_score)

    def get_collection_info(self, collection: str) -> Optional[CollectionInfo]:
        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return None
            return CollectionInfo(
                name=state.name,
                created_at=state.created_at,
                item_count=len(state.records),
                metadata=copy.deepcopy(state.metadata),
            )

    def clear(self) -> bool:
        with self._lock:
            count = len(self._collections)
            self._collections.clear()
        logger.debug(f"Cleared {count} collections from volatile memory")
        return True

    def get_stats(self) -> MemoryStoreStats:
        with self._lock:
            counts = {name: len(state.records) for name, state in self._collections.items()}
        size_bytes = self._estimate_size()
        return MemoryStoreStats(
            backend=self.backend_name,
            collection_count=len(counts),
            total_items=sum(counts.values()),
            collections=counts,
            details={
                "memory_usage_bytes": size_bytes,
                "memory_usage_mb": round(size_bytes / 1024 / 1024, 2),
            },
        )

    def __len__(self) -> int:
        """Total number of records across all collections."""
        with self._lock:
            return sum(len(state.records) for state in self._collections.values())

    def __contains__(self, collection: str) -> bool:
        return self.does_collection_exist(collection)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_volatile_store(
    config: VolatileStoreConfig | None = None,
    **kwargs: Any,
) -> VolatileMemoryStore:
    """Factory function to create a volatile memory store.

    Args:
        config: Optional configuration object.
        **kwargs: Additional arguments passed to VolatileMemoryStore.

    Returns:
        Configured VolatileMemoryStore instance.
    """
    if config is not None:
        return VolatileMemoryStore(config=config)
    return VolatileMemoryStore(**kwargs)
