"""Idempotency stores keyed by action_request_id.

The orchestrator runs side effects at most once per request id as long as
the store's check-and-set is atomic for every caller that shares it:

- InMemoryIdempotencyStore: single-process only (a lock guards ``claim``)
- FileIdempotencyStore: one marker file per id, created with O_EXCL, so
  concurrent processes on the same filesystem cannot both claim an id

Any object with ``has(id)`` / ``add(id)`` works; ``claim(id)`` is used when
present.
"""
from __future__ import annotations

import os
import re
import threading
from pathlib import Path
from typing import Protocol, Set, Union

from ..logger import get_logger

logger = get_logger(__name__)

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]")


class IdempotencyStore(Protocol):
    def has(self, request_id: str) -> bool:
        ...

    def add(self, request_id: str) -> None:
        ...


class InMemoryIdempotencyStore:
    """Process-local set of seen request ids."""

    def __init__(self):
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def has(self, request_id: str) -> bool:
        return request_id in self._seen

    def add(self, request_id: str) -> None:
        with self._lock:
            self._seen.add(request_id)

    def claim(self, request_id: str) -> bool:
        """Atomically mark ``request_id``; False if it was already present."""
        with self._lock:
            if request_id in self._seen:
                return False
            self._seen.add(request_id)
            return True

    def __len__(self) -> int:
        return len(self._seen)


class FileIdempotencyStore:
    """Marker-file store under ``base_dir`` (survives restarts)."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, request_id: str) -> Path:
        return self.base_dir / f"{_SAFE_ID_RE.sub('_', request_id)}.claimed"

    def has(self, request_id: str) -> bool:
        return self._path(request_id).exists()

    def add(self, request_id: str) -> None:
        self.claim(request_id)

    def claim(self, request_id: str) -> bool:
        """Create the marker exclusively; False if another caller got there first."""
        try:
            fd = os.open(self._path(request_id), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        try:
            os.write(fd, request_id.encode("utf-8"))
        finally:
            os.close(fd)
        logger.debug("Claimed request id %s", request_id)
        return True


def claim(store, request_id: str) -> bool:
    """Check-and-set on any store; True if this caller now owns ``request_id``."""
    atomic = getattr(store, "claim", None)
    if callable(atomic):
        return bool(atomic(request_id))
    # plain has/add stores: not atomic across concurrent callers
    if store.has(request_id):
        return False
    store.add(request_id)
    return True
