"""Tests for aegis.contracts and aegis.contracts_enforcer.

Covers:
- Policy document validator (required keys, enums, unknown keys, duplicates)
- Verdict input validators (every missing field reported)
- Plan and audit-record validators
- ContractEnforcer raising and logging violations
"""
from __future__ import annotations

import pytest

from aegis.contracts import (
    AUDIT_SCHEMA,
    PLAN_SCHEMA,
    validate_action_plan,
    validate_adapter_result,
    validate_audit_record,
    validate_policy_document,
    validate_policy_snapshot,
    validate_run_metadata,
    validate_verdict_inputs,
)
from aegis.contracts_enforcer import ContractEnforcer
from aegis.errors import ContractViolationError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_plan(**overrides):
    plan = {
        "schema_version": PLAN_SCHEMA,
        "action_request_id": "AR-0123456789abcdef",
        "run_id": "run-1",
        "proposed_action": "APPROVE_AUTOMERGE_DEPLOY",
        "final_action": "APPROVE_AUTOMERGE_DEPLOY",
        "confidence": 0.9,
        "learning_mode": False,
        "approved_for_execution": True,
        "status": "APPROVED",
        "status_transitions": [
            {"from": "PROPOSED", "to": "APPROVED", "timestamp": "t1", "reason": "ok"},
        ],
    }
    plan.update(overrides)
    return plan


def _make_audit_record(**overrides):
    record = _make_plan(
        status="VERIFIED",
        status_transitions=[
            {"from": "PROPOSED", "to": "APPROVED", "timestamp": "t1", "reason": "ok"},
            {"from": "APPROVED", "to": "EXECUTED", "timestamp": "t2", "reason": "go"},
            {"from": "EXECUTED", "to": "VERIFIED", "timestamp": "t3", "reason": "done"},
        ],
    )
    record.update({
        "schema_version": AUDIT_SCHEMA,
        "timestamp": "t4",
        "verdict_hash": "a" * 64,
        "dry_run": False,
        "adapter_results": [{"adapter": "merge", "status": "SUCCESS", "timestamp": "t2"}],
    })
    record.update(overrides)
    return record


# ---------------------------------------------------------------------------
# Tests: Policy documents
# ---------------------------------------------------------------------------

class TestPolicyDocument:

    def test_valid(self, policy_dict):
        assert validate_policy_document(policy_dict) == []

    def test_not_a_dict(self):
        assert validate_policy_document(["rules"]) == ["policy is not a dict"]

    def test_unknown_keys(self, policy_dict):
        policy_dict["owner"] = "sre"
        policy_dict["rules"][0]["priority"] = 1
        issues = validate_policy_document(policy_dict)
        assert "owner: unknown property" in issues
        assert "rules[0].priority: unknown property" in issues

    def test_rule_fields(self, policy_dict):
        policy_dict["rules"][0] = {"id": "", "when": "  ", "then": "MERGE", "severity": "LOW"}
        issues = validate_policy_document(policy_dict)
        assert "rules[0].id: must not be empty" in issues
        assert "rules[0].when: must not be empty" in issues
        assert "rules[0].reason: missing" in issues
        assert any(i.startswith("rules[0].then:") for i in issues)
        assert any(i.startswith("rules[0].severity:") for i in issues)

    def test_learning_mode_type(self, policy_dict):
        policy_dict["defaults"]["learning_mode"] = "yes"
        assert validate_policy_document(policy_dict) == [
            "defaults.learning_mode: expected boolean, got str"
        ]


# ---------------------------------------------------------------------------
# Tests: Verdict inputs
# ---------------------------------------------------------------------------

class TestVerdictInputs:

    def test_valid(self, run_metadata, verdict_inputs):
        assert validate_run_metadata(run_metadata) == []
        assert validate_verdict_inputs(verdict_inputs) == []

    def test_run_missing_fields(self):
        issues = validate_run_metadata({"run_id": "r"})
        assert sorted(issues) == [
            "run.head_sha: missing",
            "run.pr_number: missing",
            "run.repo: missing",
            "run.timestamp_utc: missing",
        ]

    def test_every_missing_signal_reported(self, verdict_inputs):
        del verdict_inputs["signals"]["ci"]["status"]
        del verdict_inputs["signals"]["security"]["high_count"]
        del verdict_inputs["change_summary"]["change_flags"]["auth_change"]
        issues = validate_verdict_inputs(verdict_inputs)
        assert "inputs.signals.ci.status: missing" in issues
        assert "inputs.signals.security.high_count: missing" in issues
        assert "inputs.change_summary.change_flags.auth_change: missing" in issues

    def test_canary_optional(self, verdict_inputs):
        del verdict_inputs["signals"]["canary"]
        assert validate_verdict_inputs(verdict_inputs) == []

    def test_ci_status_enum(self, verdict_inputs):
        verdict_inputs["signals"]["ci"]["status"] = "green"
        issues = validate_verdict_inputs(verdict_inputs)
        assert len(issues) == 1
        assert issues[0].startswith("inputs.signals.ci.status:")

    def test_snapshot(self):
        snapshot = {"matched_rules": [], "policy_action": "NONE",
                    "proposed_factory_action": "NONE"}
        assert validate_policy_snapshot(snapshot) == []
        snapshot["policy_action"] = "APPROVE_AUTOMERGE_DEPLOY"
        assert len(validate_policy_snapshot(snapshot)) == 1


# ---------------------------------------------------------------------------
# Tests: Plans and audit records
# ---------------------------------------------------------------------------

class TestPlanAndAudit:

    def test_plan_valid(self):
        assert validate_action_plan(_make_plan()) == []

    def test_plan_status_must_match_last_transition(self):
        issues = validate_action_plan(_make_plan(status="EXECUTED"))
        assert issues == ["status: EXECUTED does not match last transition target APPROVED"]

    def test_plan_confidence_range(self):
        assert validate_action_plan(_make_plan(confidence=1.5)) == [
            "confidence: 1.5 outside [0, 1]"
        ]

    def test_plan_final_action_none_rejected(self):
        assert len(validate_action_plan(_make_plan(final_action="NONE"))) == 1

    def test_audit_valid(self):
        assert validate_audit_record(_make_audit_record()) == []

    def test_audit_chain_fields_allowed(self):
        record = _make_audit_record(prev_hash="0" * 64, entry_hash="f" * 64)
        assert validate_audit_record(record) == []

    def test_audit_hash_format(self):
        issues = validate_audit_record(_make_audit_record(verdict_hash="ABC"))
        assert issues == ["verdict_hash: expected 64 lowercase hex characters"]

    def test_audit_requires_terminal_status(self):
        record = _make_audit_record(
            status="APPROVED",
            status_transitions=_make_plan()["status_transitions"],
        )
        issues = validate_audit_record(record)
        assert issues == ["status: audit records are written in a terminal state, got APPROVED"]

    def test_audit_adapter_result_fields(self):
        record = _make_audit_record(adapter_results=[{"adapter": "", "status": "DONE"}])
        issues = validate_audit_record(record)
        assert "adapter_results[0].adapter: must not be empty" in issues
        assert "adapter_results[0].timestamp: missing" in issues
        assert any(i.startswith("adapter_results[0].status:") for i in issues)

    def test_adapter_result_standalone(self):
        assert validate_adapter_result(
            {"adapter": "merge", "status": "SKIPPED", "timestamp": "t1"}
        ) == []
        assert validate_adapter_result(
            {"adapter": "merge", "status": "SUCCESS", "timestamp": "t1", "message": 42}
        ) == ["message: expected string, got int"]
        assert validate_adapter_result("SUCCESS") == ["adapter result: expected object"]


# ---------------------------------------------------------------------------
# Tests: Enforcer
# ---------------------------------------------------------------------------

class TestContractEnforcer:

    def test_valid_document_returned(self):
        enforcer = ContractEnforcer()
        plan = _make_plan()
        assert enforcer.check_plan(plan) is plan
        assert enforcer.violations == []

    def test_violation_raises_and_is_logged(self):
        enforcer = ContractEnforcer()
        with pytest.raises(ContractViolationError) as exc:
            enforcer.check_audit_record(_make_audit_record(dry_run="no"))
        assert exc.value.contract == "audit_record"
        assert exc.value.violations == ["dry_run: expected boolean, got str"]
        assert enforcer.violations == [
            {"contract": "audit_record", "issues": ["dry_run: expected boolean, got str"]}
        ]

    def test_clear_log(self):
        enforcer = ContractEnforcer()
        with pytest.raises(ContractViolationError):
            enforcer.check_policy({})
        enforcer.clear_log()
        assert enforcer.violations == []

    def test_verdict_not_a_dict(self):
        with pytest.raises(ContractViolationError) as exc:
            ContractEnforcer().check_verdict("verdict")
        assert exc.value.violations == ["verdict document is not a dict"]
