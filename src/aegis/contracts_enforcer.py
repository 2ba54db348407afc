"""Contract enforcement for release gate documents.

Wraps the validators in contracts.py: any violation raises
ContractViolationError listing every issue. There is no lenient mode; a
contract failure means an internal invariant broke.

An enforcer is created once by the caller and passed into the entry points
(``build_verdict``, ``plan``, ``execute``, ``load_policy``); it keeps a log
of the violations it has seen.

Usage:
    enforcer = ContractEnforcer()
    enforcer.check_verdict(verdict)  # Raises if the document is malformed
"""
from __future__ import annotations

from typing import Any, Dict, List

from .contracts import (
    validate_action_plan,
    validate_audit_record,
    validate_policy_document,
    validate_verdict_document,
)
from .errors import ContractViolationError
from .logger import get_logger

logger = get_logger(__name__)


class ContractEnforcer:
    """Enforces document contracts and records every violation it raises."""

    def __init__(self):
        self._violation_log: List[Dict[str, Any]] = []

    @property
    def violations(self) -> List[Dict[str, Any]]:
        """All violations recorded during this enforcer's lifetime."""
        return list(self._violation_log)

    def _handle_violations(self, contract: str, issues: List[str]) -> None:
        if not issues:
            return

        self._violation_log.append({"contract": contract, "issues": issues})
        logger.error("Contract violation [%s]: %d issue(s)", contract, len(issues))
        raise ContractViolationError(contract, issues)

    def check_policy(self, policy: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a raw policy document; returns it unchanged."""
        self._handle_violations("policy", validate_policy_document(policy))
        return policy

    def check_verdict(self, verdict: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a verdict document; returns it unchanged."""
        self._handle_violations("verdict", validate_verdict_document(verdict))
        return verdict

    def check_plan(self, plan: Dict[str, Any]) -> Dict[str, Any]:
        """Validate an action plan dict."""
        self._handle_violations("plan", validate_action_plan(plan))
        return plan

    def check_audit_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Validate an audit record before it is written."""
        self._handle_violations("audit_record", validate_audit_record(record))
        return record

    def clear_log(self) -> None:
        """Clear the violation log."""
        self._violation_log.clear()
