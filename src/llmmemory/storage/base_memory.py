# src/llmmemory/storage/base_memory.py
"""
Abstract Base Class for memory store backends.

This module defines the interface that all memory store implementations
(the process-local volatile store and the Redis-backed persistent store)
must adhere to within the llmmemory library.

Contract-wide rules:

- Ordinary operational failures never raise. Lookups of missing data return
  ``None``/``[]``/``0``; failed writes return ``False``.
- ``save_information`` creates the target collection implicitly and replaces
  any prior record with the same id (no partial-field update).
- Relevance queries are exhaustive scans ranked by
  :func:`~llmmemory.storage.scoring.rank_results`.
"""

import abc
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from ..models import (BatchItemResult, BatchSaveResult, CollectionInfo,
                      MemoryItem, MemoryQueryResult, MemoryRecord,
                      MemoryStoreStats)

logger = logging.getLogger(__name__)

BatchItemInput = Union[MemoryItem, Mapping[str, Any]]


class BaseMemoryStore(abc.ABC):
    """
    Abstract Base Class for collection-scoped memory storage.

    Defines the standard methods required for saving, retrieving and ranking
    short text records with optional embeddings. Implementations handle the
    specifics of where the records live.
    """

    #: Short backend name reported in statistics and logs.
    backend_name: str = "base"

    @abc.abstractmethod
    def save_information(
        self,
        collection: str,
        id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        embedding: Optional[Sequence[float]] = None,
    ) -> bool:
        """
        Save (upsert) a record into a collection.

        Args:
            collection: Collection name; created implicitly if absent.
            id: Record identifier, unique within the collection.
            text: Text content to store.
            metadata: Optional JSON-serializable metadata.
            embedding: Optional embedding vector. Its dimensionality is not
                checked against other records in the collection.

        Returns:
            True if the record was saved, False on any internal failure.
        """
        pass

    @abc.abstractmethod
    def get_information(self, collection: str, id: str) -> Optional[MemoryRecord]:
        """
        Retrieve a record by id.

        Returns:
            A copy of the stored record, or None if the collection or id does
            not exist.
        """
        pass

    @abc.abstractmethod
    def get_relevant(
        self,
        collection: str,
        query: str,
        limit: int = 10,
        min_relevance_score: float = 0.0,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[MemoryQueryResult]:
        """
        Rank the records of a collection by relevance to a query.

        Every record is scored (cosine similarity when both the query and the
        record have embeddings, text similarity otherwise), scores below
        *min_relevance_score* are discarded, and the top *limit* results are
        returned in descending score order.

        Returns:
            The ranked results; an empty list if the collection does not exist.
        """
        pass

    @abc.abstractmethod
    def remove_information(self, collection: str, id: str) -> bool:
        """
        Remove a record.

        Returns:
            True if a record existed and was removed, False otherwise.
        """
        pass

    @abc.abstractmethod
    def create_collection(self, collection: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        """
        Explicitly create a collection.

        Returns:
            True if newly created, False if it already existed (no-op).
        """
        pass

    @abc.abstractmethod
    def remove_collection(self, collection: str) -> bool:
        """
        Remove a collection and every record inside it.

        Returns:
            True if the collection existed.
        """
        pass

    @abc.abstractmethod
    def does_collection_exist(self, collection: str) -> bool:
        """Check whether a collection exists."""
        pass

    @abc.abstractmethod
    def get_collections(self) -> List[str]:
        """List collection names (unordered)."""
        pass

    @abc.abstractmethod
    def get_information_count(self, collection: str) -> int:
        """Number of records in a collection; 0 if it does not exist."""
        pass

    @abc.abstractmethod
    def search_by_vector(
        self,
        collection: str,
        embedding: Sequence[float],
        limit: int = 10,
        min_score: float = 0.0,
    ) -> List[MemoryQueryResult]:
        """
        Rank the records of a collection by cosine similarity to *embedding*.

        Records without an embedding are skipped entirely (no text fallback).
        """
        pass

    @abc.abstractmethod
    def get_collection_info(self, collection: str) -> Optional[CollectionInfo]:
        """Describe a collection, or None if it does not exist."""
        pass

    @abc.abstractmethod
    def clear(self) -> bool:
        """Remove every collection owned by this store."""
        pass

    @abc.abstractmethod
    def get_stats(self) -> MemoryStoreStats:
        """Collection and item counts plus backend-specific figures."""
        pass

    def close(self) -> None:
        """Release any resources held by the backend."""
        pass

    # --- Batch ingestion ---

    def batch_save_information_detailed(
        self,
        collection: str,
        items: Iterable[BatchItemInput],
    ) -> BatchSaveResult:
        """
        Save several items in sequence, reporting the outcome of each.

        Items may be :class:`~llmmemory.models.MemoryItem` instances or
        mappings with ``id``, ``text``, ``metadata`` and ``embedding`` keys.
        An item that fails validation is reported as not saved and does not
        stop the batch.
        """
        result = BatchSaveResult(collection=collection)
        for raw_item in items:
            try:
                item = raw_item if isinstance(raw_item, MemoryItem) else MemoryItem.model_validate(dict(raw_item))
            except (ValidationError, TypeError, ValueError) as e:
                item_id = raw_item.get("id") if isinstance(raw_item, Mapping) else None
                logger.warning(f"Skipping invalid batch item (id={item_id!r}) for collection '{collection}': {e}")
                result.items.append(BatchItemResult(id=item_id, saved=False, error=str(e)))
                continue

            saved = self.save_information(collection, item.id, item.text, item.metadata, item.embedding)
            result.items.append(
                BatchItemResult(id=item.id, saved=saved, error=None if saved else "save_information failed")
            )

        logger.debug(
            f"Batch save into '{collection}' ({self.backend_name}): "
            f"{result.saved_count} saved, {result.failed_count} failed."
        )
        return result

    def batch_save_information(self, collection: str, items: Iterable[BatchItemInput]) -> bool:
        """
        Save several items in sequence.

        Returns:
            True if **at least one** item was saved. This cannot tell partial
            from full success; prefer :meth:`batch_save_information_detailed`.
        """
        return self.batch_save_information_detailed(collection, items).any_saved

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(backend={self.backend_name!r})"
