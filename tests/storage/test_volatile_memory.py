# tests/storage/test_volatile_memory.py
"""
Tests for VolatileMemoryStore.

These tests verify:
- Instance ownership of collections
- copy_on_read behavior
- Thread safety of concurrent writers and readers
- Statistics and the factory function
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest

from llmmemory.config.memory_config import VolatileStoreConfig
from llmmemory.storage.volatile_memory import VolatileMemoryStore, create_volatile_store

# =============================================================================
# INITIALIZATION
# =============================================================================


class TestVolatileStoreInit:
    """Tests for store construction."""

    def test_defaults(self):
        store = VolatileMemoryStore()
        assert store.copy_on_read is True
        assert store.backend_name == "volatile"
        assert len(store) == 0

    def test_config_overrides_params(self):
        store = VolatileMemoryStore(copy_on_read=True, config=VolatileStoreConfig(copy_on_read=False))
        assert store.copy_on_read is False

    def test_instances_do_not_share_state(self):
        first = VolatileMemoryStore()
        second = VolatileMemoryStore()
        first.save_information("docs", "a", "text")

        assert second.get_collections() == []
        assert second.get_information("docs", "a") is None

    def test_factory_with_config(self):
        store = create_volatile_store(VolatileStoreConfig(copy_on_read=False))
        assert isinstance(store, VolatileMemoryStore)
        assert store.copy_on_read is False

    def test_factory_with_kwargs(self):
        assert create_volatile_store(copy_on_read=False).copy_on_read is False
        assert create_volatile_store().copy_on_read is True


# =============================================================================
# BEHAVIOR
# =============================================================================


class TestVolatileStoreBehavior:
    """Backend-specific behavior not covered by the contract tests."""

    def test_len_and_contains(self, volatile_store):
        volatile_store.save_information("A", "x", "one")
        volatile_store.save_information("B", "y", "two")
        volatile_store.save_information("B", "z", "three")

        assert len(volatile_store) == 3
        assert "A" in volatile_store
        assert "C" not in volatile_store

    def test_get_collections_in_creation_order(self, volatile_store):
        for name in ("zeta", "alpha", "mid"):
            volatile_store.create_collection(name)
        assert volatile_store.get_collections() == ["zeta", "alpha", "mid"]

    def test_query_results_do_not_alias_store(self, volatile_store):
        volatile_store.save_information("docs", "a", "cat", {"k": [1]})
        result = volatile_store.get_relevant("docs", "cat")[0]
        result.metadata["k"].append(2)
        assert volatile_store.get_information("docs", "a").metadata == {"k": [1]}

    @pytest.mark.parametrize("copy_on_read", [True, False])
    def test_caller_metadata_is_not_aliased(self, copy_on_read):
        store = VolatileMemoryStore(copy_on_read=copy_on_read)
        metadata = {"k": "v", "tags": ["a"], "nested": {"ids": [1]}}
        store.save_information("docs", "a", "text", metadata)

        metadata["k"] = "changed"
        metadata["tags"].append("b")
        metadata["nested"]["ids"].append(2)

        assert store.get_information("docs", "a").metadata == {"k": "v", "tags": ["a"], "nested": {"ids": [1]}}

    def test_collection_metadata_is_not_aliased(self, volatile_store):
        metadata = {"owners": ["team"]}
        volatile_store.create_collection("kb", metadata)
        metadata["owners"].append("intruder")

        info = volatile_store.get_collection_info("kb")
        info.metadata["owners"].append("reader")
        assert volatile_store.get_collection_info("kb").metadata == {"owners": ["team"]}

    def test_non_json_collection_metadata_rejected(self, volatile_store):
        assert volatile_store.create_collection("kb", {"obj": object()}) is False
        assert volatile_store.does_collection_exist("kb") is False

    def test_copy_on_read_disabled_returns_stored_object(self):
        store = VolatileMemoryStore(copy_on_read=False)
        store.save_information("docs", "a", "text")
        assert store.get_information("docs", "a") is store.get_information("docs", "a")

    def test_collection_info_reports_creation_metadata(self, volatile_store):
        volatile_store.create_collection("kb", {"owner": "team"})
        info = volatile_store.get_collection_info("kb")
        info.metadata["owner"] = "someone else"
        assert volatile_store.get_collection_info("kb").metadata == {"owner": "team"}

    def test_stats_details(self, volatile_store):
        volatile_store.save_information("docs", "a", "some text", {"k": "v"})
        stats = volatile_store.get_stats()

        assert stats.details["memory_usage_bytes"] > 0
        assert stats.details["memory_usage_mb"] >= 0

    def test_close_is_noop(self, volatile_store):
        volatile_store.save_information("docs", "a", "text")
        volatile_store.close()
        assert volatile_store.get_information("docs", "a") is not None

    def test_repr(self, volatile_store):
        assert "volatile" in repr(volatile_store)


# =============================================================================
# THREAD SAFETY
# =============================================================================


class TestVolatileStoreThreadSafety:
    """Concurrent access tests."""

    def test_concurrent_writes(self, volatile_store):
        def writer(worker: int) -> int:
            for i in range(50):
                volatile_store.save_information(f"c{worker % 3}", f"{worker}-{i}", f"text {i}")
            return worker

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(writer, w) for w in range(8)]
            for future in as_completed(futures):
                future.result()

        assert len(volatile_store) == 8 * 50
        assert sorted(volatile_store.get_collections()) == ["c0", "c1", "c2"]

    def test_concurrent_reads_and_writes(self, volatile_store):
        errors = []
        stop = threading.Event()

        for i in range(20):
            volatile_store.save_information("docs", f"seed-{i}", "the cat sat")

        def reader():
            try:
                while not stop.is_set():
                    results = volatile_store.get_relevant("docs", "cat", limit=5)
                    assert len(results) <= 5
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        def writer():
            try:
                for i in range(200):
                    volatile_store.save_information("docs", f"w-{i}", "a dog ran")
                    if i % 2:
                        volatile_store.remove_information("docs", f"w-{i - 1}")
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers:
            thread.start()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_thread.join()
        stop.set()
        for thread in readers:
            thread.join()

        assert errors == []
        assert volatile_store.get_information_count("docs") == 20 + 100

    @pytest.mark.parametrize("workers", [2, 8])
    def test_concurrent_create_collection_single_winner(self, volatile_store, workers):
        barrier = threading.Barrier(workers)

        def create():
            barrier.wait()
            return volatile_store.create_collection("kb")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(lambda _: create(), range(workers)))

        assert outcomes.count(True) == 1
