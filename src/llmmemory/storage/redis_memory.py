# src/llmmemory/storage/redis_memory.py
"""
Redis memory store implementation for the llmmemory library.

Uses the synchronous ``redis`` client library to persist memory collections
in a Redis server, so records survive process restarts and can be shared by
several processes.

Key layout (``<prefix>`` defaults to ``sk:memory:``):

    <prefix>collection:<name>          SET  of member record ids
    <prefix>memory:<name>:<id>         HASH id, text, metadata (JSON),
                                            embedding (JSON), timestamp (ISO-8601)
    <prefix>collection_meta:<name>     HASH name, created_at, metadata (JSON)

The membership set is the source of truth for iteration: a record hash whose
id is missing from the set is invisible to relevance queries and counts, and
a member whose hash has disappeared is skipped.

Consistency:
    By default a save is two separate round trips (hash write, then SADD) and
    removals are likewise multi-step, with no transaction around them. A
    failure between the steps leaves the orphan states described above. Set
    ``use_transactions=True`` to wrap each multi-step write in MULTI/EXEC.

Reads are one HGETALL per member unless ``pipeline_reads=True``, in which
case they are batched into a single pipeline. Either way the scan is
exhaustive and its cost grows linearly with collection size.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..config.memory_config import RedisConnectionConfig, load_memory_config
from ..exceptions import MemoryStoreError, SerializationError
from ..models import (CollectionInfo, MemoryQueryResult, MemoryRecord,
                      MemoryStoreStats, ScoringMethod, utc_now)
from .base_memory import BaseMemoryStore
from .scoring import cosine_similarity, rank_results, relevance_score

logger = logging.getLogger(__name__)

_GLOB_SPECIAL_RE = re.compile(r"([*?\[\]\\])")
_CLEAR_BATCH_SIZE = 500


def _escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so *value* matches literally in SCAN."""
    return _GLOB_SPECIAL_RE.sub(r"\\\1", value)


def _as_str(value: Any) -> str:
    """Normalise a Redis reply value (bytes when decode_responses is off)."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _as_str_dict(data: Mapping[Any, Any]) -> Dict[str, str]:
    return {_as_str(k): _as_str(v) for k, v in data.items()}


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp, or a unix timestamp written by older clients.

    Raises:
        ValueError: If *raw* is neither.
        OverflowError, OSError: If a unix timestamp is outside the platform range.
    """
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(float(raw), tz=timezone.utc)
    except ValueError:
        parsed = datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class RedisMemoryStore(BaseMemoryStore):
    """
    Manages persistence and retrieval of memory collections using Redis.

    The client can be injected (any ``redis.Redis``-compatible object) or is
    built from a :class:`~llmmemory.config.memory_config.RedisConnectionConfig`.
    A client built by the store is closed by :meth:`close`; an injected one is
    left to its owner.
    """

    backend_name = "redis"

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        key_prefix: str = "sk:memory:",
        use_transactions: bool = False,
        pipeline_reads: bool = False,
        config: Optional[RedisConnectionConfig] = None,
    ) -> None:
        """
        Initializes the Redis memory store.

        Args:
            client: Optional Redis client. Built from *config* when omitted.
            key_prefix: Namespace prepended to every key.
            use_transactions: Wrap multi-step writes in MULTI/EXEC.
            pipeline_reads: Batch per-member hash reads into one pipeline.
            config: Optional configuration object (overrides other params).

        Raises:
            MemoryStoreError: If the Redis client cannot be constructed.
        """
        if config is not None:
            key_prefix = config.key_prefix
            use_transactions = config.use_transactions
            pipeline_reads = config.pipeline_reads

        if not key_prefix:
            raise MemoryStoreError(self.backend_name, "key_prefix cannot be empty.")

        self.key_prefix = key_prefix
        self.use_transactions = use_transactions
        self.pipeline_reads = pipeline_reads

        self._owns_client = client is None
        self._client = client if client is not None else self._build_client(config or RedisConnectionConfig())

        logger.debug(
            f"RedisMemoryStore initialized: prefix='{key_prefix}', "
            f"transactions={use_transactions}, pipeline_reads={pipeline_reads}"
        )

    # --- Construction helpers ---

    @staticmethod
    def _build_client(config: RedisConnectionConfig) -> redis.Redis:
        try:
            if config.url:
                return redis.Redis.from_url(
                    config.url,
                    decode_responses=True,
                    socket_timeout=config.socket_timeout,
                )
            return redis.Redis(
                host=config.host,
                port=config.port,
                db=config.db,
                password=config.password,
                socket_timeout=config.socket_timeout,
                decode_responses=True,
            )
        except (RedisError, ValueError) as e:
            logger.error(f"Failed to create Redis client: {e}", exc_info=True)
            raise MemoryStoreError("redis", f"Could not create Redis client: {e}") from e

    @classmethod
    def from_config(cls, config: RedisConnectionConfig) -> "RedisMemoryStore":
        """Create a store (and its client) from a connection configuration."""
        return cls(config=config)

    @classmethod
    def from_environment(cls) -> "RedisMemoryStore":
        """
        Create a store configured from environment variables.

        Reads ``REDIS_URL``/``REDIS_HOST``/``REDIS_PORT``/``REDIS_PASSWORD``/
        ``REDIS_DB`` and the ``LLMMEMORY_REDIS_*`` overrides.
        """
        return cls.from_config(load_memory_config(apply_env=True).redis)

    # --- Key naming ---

    def _memory_key(self, collection: str, id: str) -> str:
        return f"{self.key_prefix}memory:{collection}:{id}"

    def _collection_key(self, collection: str) -> str:
        return f"{self.key_prefix}collection:{collection}"

    def _collection_meta_key(self, collection: str) -> str:
        return f"{self.key_prefix}collection_meta:{collection}"

    # --- Serialization ---

    def _encode_record(self, record: MemoryRecord) -> Dict[str, str]:
        """Hash fields for a record. Raises TypeError/ValueError for non-JSON metadata."""
        return {
            "id": record.id,
            "text": record.text,
            "metadata": json.dumps(record.metadata),
            "embedding": json.dumps(record.embedding),
            "timestamp": record.timestamp.isoformat(),
        }

    def _decode_record(self, key: str, id: str, data: Mapping[str, str]) -> MemoryRecord:
        """
        Rebuild a record from its hash fields.

        Raises:
            SerializationError: If a field cannot be decoded.
        """
        try:
            return MemoryRecord(
                id=id,
                text=data.get("text", ""),
                metadata=json.loads(data.get("metadata") or "{}"),
                embedding=json.loads(data.get("embedding") or "[]"),
                timestamp=_parse_timestamp(data.get("timestamp")) or utc_now(),
            )
        except (ValueError, TypeError, OverflowError, OSError, ValidationError) as e:
            raise SerializationError(key, f"Could not decode stored record: {e}") from e

    # --- Internal reads ---

    def _fetch_hashes(self, keys: List[str]) -> List[Dict[str, str]]:
        """HGETALL each key, one round trip per key or one pipeline."""
        if self.pipeline_reads:
            with self._client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.hgetall(key)
                rows = pipe.execute()
        else:
            rows = [self._client.hgetall(key) for key in keys]
        return [_as_str_dict(row or {}) for row in rows]

    def _load_records(self, collection: str) -> List[MemoryRecord]:
        """
        Load every decodable record of a collection.

        Members without a hash and hashes that fail to decode are skipped.

        Raises:
            RedisError: On any Redis failure.
        """
        member_ids = sorted(_as_str(m) for m in self._client.smembers(self._collection_key(collection)))
        if not member_ids:
            return []

        keys = [self._memory_key(collection, member_id) for member_id in member_ids]
        records: List[MemoryRecord] = []
        for member_id, key, data in zip(member_ids, keys, self._fetch_hashes(keys)):
            if not data:
                logger.debug(f"Skipping member '{member_id}' of '{collection}': hash is missing")
                continue
            try:
                records.append(self._decode_record(key, member_id, data))
            except SerializationError as e:
                logger.warning(f"Skipping corrupt record: {e}")
        return records

    # --- Contract ---

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
                metadata=dict(metadata or {}),
                embedding=list(embedding) if embedding is not None else [],
            )
            fields = self._encode_record(record)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Rejected record '{id}' for collection '{collection}': {e}")
            return False

        key = self._memory_key(collection, id)
        collection_key = self._collection_key(collection)
        meta_key = self._collection_meta_key(collection)
        created_at = fields["timestamp"]

        try:
            if self.use_transactions:
                with self._client.pipeline(transaction=True) as pipe:
                    pipe.hset(key, mapping=fields)
                    pipe.sadd(collection_key, id)
                    pipe.hsetnx(meta_key, "name", collection)
                    pipe.hsetnx(meta_key, "created_at", created_at)
                    pipe.hsetnx(meta_key, "metadata", "{}")
                    pipe.execute()
            else:
                self._client.hset(key, mapping=fields)
                self._client.sadd(collection_key, id)
                # Implicit creation must not clobber an explicit one.
                self._client.hsetnx(meta_key, "name", collection)
                self._client.hsetnx(meta_key, "created_at", created_at)
                self._client.hsetnx(meta_key, "metadata", "{}")
        except RedisError as e:
            logger.error(f"Failed to save record '{id}' into Redis collection '{collection}': {e}", exc_info=True)
            return False

        logger.debug(f"Saved record '{id}' into Redis collection '{collection}'")
        return True

    def get_information(self, collection: str, id: str) -> Optional[MemoryRecord]:
        key = self._memory_key(collection, id)
        try:
            data = _as_str_dict(self._client.hgetall(key) or {})
        except RedisError as e:
            logger.error(f"Failed to read record '{id}' from Redis collection '{collection}': {e}", exc_info=True)
            return None

        if not data:
            return None

        try:
            return self._decode_record(key, id, data)
        except SerializationError as e:
            logger.warning(str(e))
            return None

    def get_relevant(
        self,
        collection: str,
        query: str,
        limit: int = 10,
        min_relevance_score: float = 0.0,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[MemoryQueryResult]:
        try:
            records = self._load_records(collection)
        except RedisError as e:
            logger.error(f"get_relevant failed for Redis collection '{collection}': {e}", exc_info=True)
            return []

        results = []
        for record in records:
            score, method = relevance_score(query, record.text, query_embedding, record.embedding)
            if score >= min_relevance_score:
                results.append(MemoryQueryResult.from_record(record, score, method))

        ranked = rank_results(results, limit, min_relevance_score)
        logger.debug(
            f"get_relevant on Redis collection '{collection}': scanned {len(records)} records, "
            f"returning {len(ranked)}"
        )
        return ranked

    def search_by_vector(
        self,
        collection: str,
        embedding: Sequence[float],
        limit: int = 10,
        min_score: float = 0.0,
    ) -> List[MemoryQueryResult]:
        try:
            records = self._load_records(collection)
        except RedisError as e:
            logger.error(f"search_by_vector failed for Redis collection '{collection}': {e}", exc_info=True)
            return []

        results = []
        for record in records:
            if not record.embedding:
                continue
            similarity = cosine_similarity(embedding, record.embedding)
            if similarity >= min_score:
                results.append(MemoryQueryResult.from_record(record, similarity, ScoringMethod.COSINE))

        return rank_results(results, limit, min_score)

    def remove_information(self, collection: str, id: str) -> bool:
        key = self._memory_key(collection, id)
        collection_key = self._collection_key(collection)
        try:
            if self.use_transactions:
                with self._client.pipeline(transaction=True) as pipe:
                    pipe.delete(key)
                    pipe.srem(collection_key, id)
                    deleted, removed = pipe.execute()
            else:
                deleted = self._client.delete(key)
                removed = self._client.srem(collection_key, id)
        except RedisError as e:
            logger.error(f"Failed to remove record '{id}' from Redis collection '{collection}': {e}", exc_info=True)
            return False

        if not (deleted or removed):
            return False
        logger.debug(f"Removed record '{id}' from Redis collection '{collection}'")
        return True

    def create_collection(self, collection: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        try:
            encoded_metadata = json.dumps(dict(metadata or {}))
        except (TypeError, ValueError) as e:
            logger.error(f"Rejected metadata for collection '{collection}': {e}")
            return False

        meta_key = self._collection_meta_key(collection)
        try:
            if self._exists(collection):
                return False
            # HSETNX on "name" decides between concurrent creators; only the
            # winner writes the remaining fields.
            if not self._client.hsetnx(meta_key, "name", collection):
                return False
            self._client.hset(
                meta_key,
                mapping={
                    "created_at": utc_now().isoformat(),
                    "metadata": encoded_metadata,
                },
            )
        except RedisError as e:
            logger.error(f"Failed to create Redis collection '{collection}': {e}", exc_info=True)
            return False

        logger.debug(f"Created Redis collection '{collection}'")
        return True

    def remove_collection(self, collection: str) -> bool:
        collection_key = self._collection_key(collection)
        meta_key = self._collection_meta_key(collection)
        try:
            if not self._exists(collection):
                return False

            member_ids = [_as_str(m) for m in self._client.smembers(collection_key)]
            member_keys = [self._memory_key(collection, member_id) for member_id in member_ids]
            if self.use_transactions:
                with self._client.pipeline(transaction=True) as pipe:
                    for key in member_keys:
                        pipe.delete(key)
                    pipe.delete(collection_key)
                    pipe.delete(meta_key)
                    pipe.execute()
            else:
                for key in member_keys:
                    self._client.delete(key)
                self._client.delete(collection_key)
                self._client.delete(meta_key)
        except RedisError as e:
            logger.error(f"Failed to remove Redis collection '{collection}': {e}", exc_info=True)
            return False

        logger.debug(f"Removed Redis collection '{collection}' ({len(member_keys)} records)")
        return True

    def _exists(self, collection: str) -> bool:
        """Raises RedisError; callers decide how to report it."""
        return self._client.exists(self._collection_key(collection), self._collection_meta_key(collection)) > 0

    def does_collection_exist(self, collection: str) -> bool:
        try:
            return self._exists(collection)
        except RedisError as e:
            logger.error(f"Failed to check Redis collection '{collection}': {e}", exc_info=True)
            return False

    def get_collections(self) -> List[str]:
        names = set()
        try:
            for kind in ("collection:", "collection_meta:"):
                prefix = f"{self.key_prefix}{kind}"
                for key in self._client.scan_iter(match=f"{_escape_glob(prefix)}*"):
                    names.add(_as_str(key)[len(prefix):])
        except RedisError as e:
            logger.error(f"Failed to list Redis collections: {e}", exc_info=True)
            return []
        return sorted(names)

    def get_information_count(self, collection: str) -> int:
        try:
            return int(self._client.scard(self._collection_key(collection)))
        except RedisError as e:
            logger.error(f"Failed to count Redis collection '{collection}': {e}", exc_info=True)
            return 0

    def get_collection_info(self, collection: str) -> Optional[CollectionInfo]:
        meta_key = self._collection_meta_key(collection)
        try:
            if not self._exists(collection):
                return None
            meta = _as_str_dict(self._client.hgetall(meta_key) or {})
            item_count = int(self._client.scard(self._collection_key(collection)))
        except RedisError as e:
            logger.error(f"Failed to describe Redis collection '{collection}': {e}", exc_info=True)
            return None

        try:
            created_at = _parse_timestamp(meta.get("created_at"))
            metadata = json.loads(meta.get("metadata") or "{}")
        except (ValueError, OverflowError, OSError) as e:
            logger.warning(str(SerializationError(meta_key, f"Could not decode collection metadata: {e}")))
            created_at, metadata = None, {}

        return CollectionInfo(name=collection, created_at=created_at, item_count=item_count, metadata=metadata)

    def clear(self) -> bool:
        deleted = 0
        try:
            batch: List[str] = []
            for key in self._client.scan_iter(match=f"{_escape_glob(self.key_prefix)}*"):
                batch.append(key)
                if len(batch) >= _CLEAR_BATCH_SIZE:
                    deleted += self._client.delete(*batch)
                    batch = []
            if batch:
                deleted += self._client.delete(*batch)
        except RedisError as e:
            logger.error(f"Failed to clear Redis keys under '{self.key_prefix}': {e}", exc_info=True)
            return False

        logger.debug(f"Cleared {deleted} Redis keys under '{self.key_prefix}'")
        return True

    def _memory_usage(self) -> Dict[str, Any]:
        try:
            info = self._client.info("memory")
        except RedisError as e:
            logger.warning(f"Could not retrieve Redis memory info: {e}")
            return {"error": "Could not retrieve memory info"}
        return {
            "used_memory": info.get("used_memory", 0),
            "used_memory_human": info.get("used_memory_human", "0B"),
            "used_memory_peak": info.get("used_memory_peak", 0),
        }

    def get_stats(self) -> MemoryStoreStats:
        counts = {name: self.get_information_count(name) for name in self.get_collections()}
        return MemoryStoreStats(
            backend=self.backend_name,
            collection_count=len(counts),
            total_items=sum(counts.values()),
            collections=counts,
            details={"key_prefix": self.key_prefix, "memory_usage": self._memory_usage()},
        )

    def ping(self) -> bool:
        """Check that the Redis server is reachable."""
        try:
            return bool(self._client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self) -> None:
        """Close the Redis client if this store created it."""
        if self._owns_client:
            try:
                self._client.close()
                logger.debug("Redis client closed.")
            except RedisError as e:
                logger.warning(f"Error closing Redis client: {e}")

    def __repr__(self) -> str:
        return f"RedisMemoryStore(key_prefix={self.key_prefix!r})"
