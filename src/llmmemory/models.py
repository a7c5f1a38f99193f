# src/llmmemory/models.py
"""
Core data models for the llmmemory library.

This module defines the Pydantic models used to represent the records held
by a memory store, the ranked results returned by relevance queries, and the
bookkeeping structures (collection info, batch outcomes, statistics) exposed
by every backend. These models ensure data consistency, validation, and ease
of serialization/deserialization across the volatile and Redis backends.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ScoringMethod(str, Enum):
    """
    Which scale produced a relevance score.

    Cosine scores lie in [-1, 1], text (Jaccard) scores in [0, 1]. A single
    relevance query may mix both when only some records carry embeddings.
    """
    COSINE = "cosine"
    TEXT = "text"


class MemoryRecord(BaseModel):
    """
    Represents a single piece of information held in a memory collection.

    Attributes:
        id: Caller-supplied identifier, unique within its collection.
        text: The textual content (may be empty).
        metadata: Free-form, JSON-serializable key/value pairs; opaque to the store.
        embedding: Optional embedding vector. Empty when none was supplied.
        timestamp: Write time, set by the store.
    """
    id: str = Field(description="Identifier of the record, unique within its collection.")
    text: str = Field(default="", description="Textual content of the record.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata.")
    embedding: List[float] = Field(default_factory=list, description="Optional embedding vector (empty if absent).")
    timestamp: datetime = Field(default_factory=utc_now, description="Time the record was written.")

    @field_validator("embedding", mode="before")
    @classmethod
    def _none_embedding_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class MemoryQueryResult(MemoryRecord):
    """
    A record projected into a query result, with its computed score.

    ``relevance`` and ``similarity`` are aliases of ``score``: relevance
    queries call it relevance, vector searches call it similarity.
    """
    score: float = Field(description="Relevance or similarity score of the record for the query.")
    method: ScoringMethod = Field(description="Scoring method that produced the score.")

    @property
    def relevance(self) -> float:
        return self.score

    @property
    def similarity(self) -> float:
        return self.score

    @classmethod
    def from_record(cls, record: MemoryRecord, score: float, method: ScoringMethod) -> "MemoryQueryResult":
        return cls(**record.model_dump(), score=score, method=method)


class CollectionInfo(BaseModel):
    """Descriptive information about a collection."""
    name: str
    created_at: Optional[datetime] = Field(default=None, description="Creation time, if known.")
    item_count: int = Field(default=0, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryItem(BaseModel):
    """
    One entry of a batch save.

    A missing ``id`` gets a generated unique identifier.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class BatchItemResult(BaseModel):
    """Outcome of saving one batch item."""
    id: Optional[str] = None
    saved: bool
    error: Optional[str] = None


class BatchSaveResult(BaseModel):
    """Per-item outcome of a batch save."""
    collection: str
    items: List[BatchItemResult] = Field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return sum(1 for item in self.items if item.saved)

    @property
    def failed_count(self) -> int:
        return len(self.items) - self.saved_count

    @property
    def any_saved(self) -> bool:
        return self.saved_count > 0

    @property
    def all_saved(self) -> bool:
        return bool(self.items) and self.failed_count == 0

    @property
    def failed_ids(self) -> List[Optional[str]]:
        return [item.id for item in self.items if not item.saved]


class MemoryStoreStats(BaseModel):
    """
    Statistics about a memory store.

    Attributes:
        backend: Backend name ("volatile" or "redis").
        collection_count: Number of collections.
        total_items: Number of records across all collections.
        collections: Item count per collection name.
        details: Backend-specific figures (memory usage and similar).
    """
    backend: str
    collection_count: int = 0
    total_items: int = 0
    collections: Dict[str, int] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)
