# tests/storage/conftest.py
"""
Pytest configuration and fixtures for storage tests.

Redis-backed tests run against ``fakeredis``, wrapped so individual commands
can be made to fail. Tests marked ``requires_redis`` talk to a live server instead.

Configuration via environment variables:
    LLMMEMORY_TEST_REDIS_URL: Redis URL for live tests (e.g. redis://localhost:6379/15).
        Live tests are skipped when unset.
    LLMMEMORY_SKIP_REDIS_TESTS: Skip live Redis tests even if a URL is set.

Usage:
    # Unit tests only
    pytest tests/storage/

    # Include live Redis tests
    LLMMEMORY_TEST_REDIS_URL=redis://localhost:6379/15 pytest tests/storage/
"""

import os
import uuid
from typing import Any, Dict, Iterator, List, Optional, Set

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from llmmemory.storage.redis_memory import RedisMemoryStore
from llmmemory.storage.volatile_memory import VolatileMemoryStore

# =============================================================================
# REDIS CONFIGURATION
# =============================================================================

def get_redis_url() -> Optional[str]:
    """Live Redis URL from the environment, or None."""
    return os.environ.get("LLMMEMORY_TEST_REDIS_URL") or None


def should_skip_redis_tests() -> bool:
    """
    Check if live Redis tests should be skipped.

    Returns:
        True if no URL is configured or LLMMEMORY_SKIP_REDIS_TESTS is truthy
    """
    skip = os.environ.get("LLMMEMORY_SKIP_REDIS_TESTS", "").lower()
    return get_redis_url() is None or skip in ("1", "true", "yes", "on")


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "requires_redis: mark test as requiring a live Redis server (skip if not configured)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live Redis tests if configured or unavailable."""
    if should_skip_redis_tests():
        skip_redis = pytest.mark.skip(reason="Live Redis tests disabled (set LLMMEMORY_TEST_REDIS_URL)")
        for item in items:
            if "requires_redis" in item.keywords:
                item.add_marker(skip_redis)


# =============================================================================
# FAKE REDIS WITH FAILURE INJECTION
# =============================================================================

class FailingFakeRedis(fakeredis.FakeRedis):
    """
    ``fakeredis.FakeRedis`` that records commands and can be told to fail.

    Every command name (lower-cased, e.g. ``"hgetall"``, ``"del"``, ``"scan"``)
    is appended to ``calls``. Commands named in ``fail_on`` raise
    ``redis.exceptions.ConnectionError``. Inside a pipeline the whole
    ``execute()`` fails before anything is applied.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fail_on: Set[str] = set()
        self.calls: List[str] = []
        self.transactions: int = 0
        self.closed = False

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RedisConnectionError(f"simulated failure in {name}")

    def execute_command(self, *args: Any, **options: Any) -> Any:
        self._record(str(args[0]).lower())
        return super().execute_command(*args, **options)

    def info(self, section: Optional[str] = None, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        # Fixed figures so stats assertions do not depend on the fake's INFO support.
        self._record("info")
        return {"used_memory": 1024, "used_memory_human": "1.00K", "used_memory_peak": 2048}

    def close(self) -> None:
        self.closed = True
        super().close()

    def pipeline(self, transaction: bool = True, shard_hint: Any = None) -> "RecordingPipeline":
        return RecordingPipeline(self, super().pipeline(transaction=transaction, shard_hint=shard_hint))


class RecordingPipeline:
    """Wraps a fakeredis pipeline so ``execute()`` is recorded and can fail."""

    def __init__(self, client: FailingFakeRedis, pipe: Any) -> None:
        self._client = client
        self._pipe = pipe

    def __enter__(self) -> "RecordingPipeline":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._pipe.reset()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._pipe, name)

    def execute(self) -> List[Any]:
        self._client._record("execute")
        if self._pipe.transaction:
            self._client.transactions += 1
        for args, _ in self._pipe.command_stack:
            name = str(args[0]).lower()
            if name in self._client.fail_on:
                self._pipe.reset()
                raise RedisConnectionError(f"simulated failure in {name}")
        return self._pipe.execute()


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_redis() -> FailingFakeRedis:
    """fakeredis client on a server of its own."""
    return FailingFakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def redis_store(fake_redis: FailingFakeRedis) -> RedisMemoryStore:
    """RedisMemoryStore over fakeredis."""
    return RedisMemoryStore(client=fake_redis, key_prefix="test:memory:")


@pytest.fixture
def volatile_store() -> VolatileMemoryStore:
    """Fresh volatile store."""
    return VolatileMemoryStore()


@pytest.fixture(params=["volatile", "redis", "redis_transactional"])
def memory_store(request, fake_redis: FailingFakeRedis):
    """Every backend configuration, for contract tests."""
    if request.param == "volatile":
        return VolatileMemoryStore()
    if request.param == "redis":
        return RedisMemoryStore(client=fake_redis, key_prefix="test:memory:")
    return RedisMemoryStore(
        client=fake_redis,
        key_prefix="test:memory:",
        use_transactions=True,
        pipeline_reads=True,
    )


@pytest.fixture
def live_redis_store() -> Iterator[RedisMemoryStore]:
    """RedisMemoryStore against a live server, under a unique key prefix."""
    import redis

    client = redis.Redis.from_url(get_redis_url(), decode_responses=True)
    store = RedisMemoryStore(client=client, key_prefix=f"llmmemory-test:{uuid.uuid4().hex}:")
    yield store
    store.clear()
    client.close()
