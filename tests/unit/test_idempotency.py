"""Tests for aegis.orchestrator.idempotency."""
from __future__ import annotations

import threading

from aegis.orchestrator.idempotency import FileIdempotencyStore, InMemoryIdempotencyStore, claim


class _PlainStore:
    """has/add only, like a caller-supplied store without claim()."""

    def __init__(self):
        self.seen = set()

    def has(self, request_id):
        return request_id in self.seen

    def add(self, request_id):
        self.seen.add(request_id)


class TestInMemoryStore:

    def test_claim_once(self):
        store = InMemoryIdempotencyStore()
        assert store.claim("AR-1") is True
        assert store.claim("AR-1") is False
        assert store.has("AR-1")
        assert len(store) == 1

    def test_concurrent_claims_single_winner(self):
        store = InMemoryIdempotencyStore()
        wins = []

        def worker():
            if store.claim("AR-race"):
                wins.append(1)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(wins) == 1


class TestFileStore:

    def test_claim_persists_across_instances(self, tmp_path):
        assert FileIdempotencyStore(tmp_path).claim("AR-1") is True
        again = FileIdempotencyStore(tmp_path)
        assert again.has("AR-1")
        assert again.claim("AR-1") is False

    def test_unsafe_characters_sanitised(self, tmp_path):
        store = FileIdempotencyStore(tmp_path / "ids")
        store.add("AR/../x y")
        assert store.has("AR/../x y")
        assert [p.name for p in (tmp_path / "ids").iterdir()] == ["AR_.._x_y.claimed"]


class TestClaimHelper:

    def test_plain_store(self):
        store = _PlainStore()
        assert claim(store, "AR-1") is True
        assert claim(store, "AR-1") is False

    def test_prefers_atomic_claim(self, tmp_path):
        store = FileIdempotencyStore(tmp_path)
        assert claim(store, "AR-2") is True
        assert claim(store, "AR-2") is False
