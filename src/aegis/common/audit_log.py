"""Append-only audit log with tamper detection via hash chain.

Each line is one JSON execution record (contract-checked before it is
written) extended with:
  - prev_hash: entry_hash of the previous line (chain integrity)
  - entry_hash: SHA256 of this record plus prev_hash

Modifying any line breaks the chain from that point forward. Writes are
never retried or swallowed: a failed append raises AuditWriteError.

Usage:
    log = AuditLog(Path("output/audit.jsonl"))
    log.append(record)
    is_valid, issues = log.verify_chain()
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..contracts_enforcer import ContractEnforcer
from ..errors import AuditWriteError
from ..logger import get_logger

logger = get_logger(__name__)

# prev_hash of the first entry in a new log
GENESIS_HASH = "0" * 64

_CHAIN_FIELDS = ("prev_hash", "entry_hash")


@dataclass
class AuditEntry:
    """Single audit log line."""
    record: Dict[str, Any]
    prev_hash: str
    entry_hash: str = ""

    def compute_hash(self) -> str:
        """SHA256 of record + prev_hash (entry_hash excluded)."""
        d = dict(self.record)
        d["prev_hash"] = self.prev_hash
        blob = json.dumps(d, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return hashlib.sha256(blob).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.record)
        d["prev_hash"] = self.prev_hash
        d["entry_hash"] = self.entry_hash
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        record = {k: v for k, v in data.items() if k not in _CHAIN_FIELDS}
        return cls(record=record, prev_hash=data["prev_hash"], entry_hash=data["entry_hash"])

    @property
    def action_request_id(self) -> Optional[str]:
        return self.record.get("action_request_id")

    @property
    def run_id(self) -> Optional[str]:
        return self.record.get("run_id")

    @property
    def status(self) -> Optional[str]:
        return self.record.get("status")


class AuditLog:
    """Append-only JSONL audit log with hash chain."""

    def __init__(self, log_path: Path, enforcer: Optional[ContractEnforcer] = None):
        """Initialize. Creates the file (and parents) if missing."""
        self.path = Path(log_path)
        self.enforcer = enforcer or ContractEnforcer()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self.path.touch()
        except OSError as e:
            raise AuditWriteError(f"Cannot open audit log {self.path}: {e}") from e

    def _get_last_hash(self) -> str:
        """Hash of the last entry, or the genesis hash for an empty log."""
        if not self.path.exists() or self.path.stat().st_size == 0:
            return GENESIS_HASH

        last_line = ""
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    last_line = line

        if not last_line:
            return GENESIS_HASH

        try:
            return json.loads(last_line)["entry_hash"]
        except (json.JSONDecodeError, KeyError) as e:
            raise AuditWriteError(
                f"Audit log {self.path} has a corrupt last entry; refusing to extend chain"
            ) from e

    def append(self, record: Dict[str, Any]) -> AuditEntry:
        """Validate and append one execution record.

        Args:
            record: Audit record body (see contracts.validate_audit_record)

        Returns:
            The written AuditEntry

        Raises:
            ContractViolationError: record fails its contract (nothing written)
            AuditWriteError: the file could not be read or appended
        """
        self.enforcer.check_audit_record(record)

        try:
            prev_hash = self._get_last_hash()
            entry = AuditEntry(record=dict(record), prev_hash=prev_hash)
            entry.entry_hash = entry.compute_hash()
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False, sort_keys=True) + "\n")
        except OSError as e:
            logger.error("Audit write failed for %s", self.path, exc_info=True)
            raise AuditWriteError(f"Cannot append to audit log {self.path}: {e}") from e

        logger.debug(
            "Audit: %s %s %s",
            record.get("action_request_id"), record.get("status"), entry.entry_hash[:12],
        )
        return entry

    def verify_chain(self) -> Tuple[bool, List[str]]:
        """Verify the hash chain integrity.

        Checks:
        1. Every line parses
        2. Each entry's entry_hash matches its computed hash
        3. Each entry's prev_hash matches the previous entry's entry_hash
        4. First entry's prev_hash is the genesis hash

        Returns:
            (is_valid, list_of_issues)
        """
        issues: List[str] = []
        entries: List[AuditEntry] = []
        for i, data in self._iter_lines():
            if data is None:
                issues.append(f"Entry {i}: unparseable line")
                continue
            try:
                entries.append(AuditEntry.from_dict(data))
            except KeyError as e:
                issues.append(f"Entry {i}: missing chain field {e}")

        if entries and entries[0].prev_hash != GENESIS_HASH:
            issues.append(
                f"Entry 0: prev_hash should be genesis but is {entries[0].prev_hash[:12]}"
            )

        for i, entry in enumerate(entries):
            computed = entry.compute_hash()
            if computed != entry.entry_hash:
                issues.append(
                    f"Entry {i}: hash mismatch (stored={entry.entry_hash[:12]}, "
                    f"computed={computed[:12]})"
                )
            if i > 0:
                expected_prev = entries[i - 1].entry_hash
                if entry.prev_hash != expected_prev:
                    issues.append(
                        f"Entry {i}: chain break (prev_hash={entry.prev_hash[:12]}, "
                        f"expected={expected_prev[:12]})"
                    )

        is_valid = len(issues) == 0
        if is_valid:
            logger.info("Audit chain verified: %d entries, all valid", len(entries))
        else:
            logger.warning("Audit chain INVALID: %d issues found", len(issues))
        return is_valid, issues

    def _iter_lines(self):
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            index = 0
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield index, json.loads(line)
                except json.JSONDecodeError:
                    yield index, None
                index += 1

    def read_all(self) -> List[AuditEntry]:
        """Read all parseable entries (use verify_chain to detect damage)."""
        entries: List[AuditEntry] = []
        for i, data in self._iter_lines():
            if data is None:
                logger.warning("Failed to parse audit entry %d", i)
                continue
            try:
                entries.append(AuditEntry.from_dict(data))
            except KeyError as e:
                logger.warning("Audit entry %d missing chain field %s", i, e)
        return entries

    def query(
        self,
        run_id: Optional[str] = None,
        action_request_id: Optional[str] = None,
        status: Optional[str] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> List[AuditEntry]:
        """Filter entries by run, request id, terminal status or ISO time window."""
        entries = self.read_all()

        if run_id:
            entries = [e for e in entries if e.run_id == run_id]
        if action_request_id:
            entries = [e for e in entries if e.action_request_id == action_request_id]
        if status:
            entries = [e for e in entries if e.status == status]
        if since:
            entries = [e for e in entries if e.record.get("timestamp", "") >= since]
        if until:
            entries = [e for e in entries if e.record.get("timestamp", "") <= until]

        return entries
