"""Tests for shared/memory.py."""

import threading

import pytest

from shared.memory import MemoryStore


class TestMemoryStore:
    @pytest.fixture
    def store(self):
        return MemoryStore()

    def test_write_outside_transaction_rejected(self, store):
        with pytest.raises(RuntimeError):
            store.put("t", "k", 1)

    def test_commit(self, store):
        with store.transaction():
            store.put("t", "k", 1)
        assert store.get("t", "k") == 1
        assert not store.in_transaction

    def test_rollback_restores_previous_values(self, store):
        with store.transaction():
            store.put("t", "a", 1)

        with pytest.raises(ValueError):
            with store.transaction():
                store.put("t", "a", 2)
                store.put("t", "b", 3)
                raise ValueError("boom")

        assert store.get("t", "a") == 1
        assert store.get("t", "b") is None

    def test_nested_rollback_keeps_outer_writes(self, store):
        with store.transaction():
            store.put("t", "outer", 1)
            with pytest.raises(ValueError):
                with store.transaction():
                    store.put("t", "inner", 2)
                    raise ValueError("inner failure")
        assert store.get("t", "outer") == 1
        assert store.get("t", "inner") is None

    def test_outer_rollback_undoes_committed_inner(self, store):
        with pytest.raises(ValueError):
            with store.transaction():
                with store.transaction():
                    store.put("t", "inner", 2)
                raise ValueError("outer failure")
        assert store.get("t", "inner") is None

    def test_insert_if_absent(self, store):
        with store.transaction():
            assert store.insert_if_absent("t", "k", 1) is True
            assert store.insert_if_absent("t", "k", 2) is False
        assert store.get("t", "k") == 1

    def test_select_filters(self, store):
        with store.transaction():
            for i in range(5):
                store.put("t", str(i), i)
        assert sorted(store.select("t", lambda v: v % 2 == 0)) == [0, 2, 4]
        assert store.select("missing") == []

    def test_concurrent_increments_are_serialized(self, store):
        with store.transaction():
            store.put("t", "counter", 0)

        def bump():
            for _ in range(200):
                with store.transaction():
                    store.put("t", "counter", store.get("t", "counter") + 1)

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.get("t", "counter") == 1600
