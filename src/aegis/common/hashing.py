"""Hash helpers for stable ids and content fingerprints."""
import hashlib
from typing import Any

from .file_io import canonical_json


def sha256(s: str) -> str:
    """SHA-256 hex digest of a string.

    Example:
        >>> len(sha256("aegis"))
        64
    """
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def content_hash(obj: Any) -> str:
    """SHA-256 of the canonical JSON form of ``obj`` (key order independent)."""
    return sha256(canonical_json(obj))


def stable_action_request_id(run_id: str, verdict_hash: str, final_action: str) -> str:
    """Deterministic action request id for one (run, verdict, action) triple.

    Example:
        >>> stable_action_request_id("run-1", "ab" * 32, "KILL_AND_ROLLBACK")[:3]
        'AR-'

    Notes:
        - Same inputs always give the same id, so replaying a verdict maps onto
          the same idempotency key
        - 16 hex chars of SHA-256
    """
    return "AR-" + sha256(f"{run_id}|{verdict_hash}|{final_action}")[:16]
