"""End-to-end: policy file -> evaluation -> verdict -> plan -> audited execution."""
from __future__ import annotations

import asyncio

import yaml

from aegis import build_policy_snapshot, build_verdict, evaluate_policy, execute, load_policy, plan
from aegis.common.audit_log import AuditLog
from aegis.orchestrator import (
    CallableAdapter,
    ExecuteOptions,
    FileIdempotencyStore,
    PlanStatus,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _signals_from_inputs(inputs):
    signals = inputs["signals"]
    flags = inputs["change_summary"]["change_flags"]
    canary = signals.get("canary") or {}
    return {
        "ci_status": signals["ci"]["status"],
        "security_critical_count": signals["security"]["critical_count"],
        "security_high_count": signals["security"]["high_count"],
        "infra_change": flags["infra_change"],
        "db_migration": flags["db_migration"],
        "auth_change": flags["auth_change"],
        "secrets_change": flags["secrets_change"],
        "dependency_change": flags["dependency_change"],
        "canary_error_rate": canary.get("error_rate", 0.0),
        "canary_latency_delta": canary.get("latency_delta", 0.0),
    }


def _gate(tmp_path, policy_path, run, inputs, calls, dry_run=False):
    policy = load_policy(policy_path)
    result = evaluate_policy(policy, _signals_from_inputs(inputs))
    verdict = build_verdict(run, inputs, build_policy_snapshot(result))
    action_plan = plan(verdict, auto_execute_min_confidence=0.85)

    def record(name):
        def run_adapter(action, context):
            calls.append((name, action))
            return {"status": "SUCCESS"}
        return CallableAdapter(name, run_adapter)

    options = ExecuteOptions(
        dry_run=dry_run,
        audit_path=tmp_path / "audit" / "aegis.jsonl",
        idempotency_store=FileIdempotencyStore(tmp_path / "ids"),
    )
    outcome = asyncio.run(execute(verdict, action_plan, [record("merge"), record("deploy")], options))
    return verdict, action_plan, outcome


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestReleaseGatePipeline:

    def _write_policy(self, tmp_path, policy_dict):
        path = tmp_path / "policy.yaml"
        path.write_text(yaml.safe_dump(policy_dict, sort_keys=False), encoding="utf-8")
        return path

    def test_green_change_merges_and_deploys_once(self, tmp_path, policy_dict, run_metadata,
                                                  verdict_inputs):
        path = self._write_policy(tmp_path, policy_dict)
        calls = []

        verdict, action_plan, outcome = _gate(tmp_path, path, run_metadata, verdict_inputs, calls)
        assert verdict["verdict"]["proposed_action"] == "APPROVE_AUTOMERGE_DEPLOY"
        assert action_plan.approved_for_execution
        assert outcome.plan.status is PlanStatus.VERIFIED
        assert calls == [("merge", "APPROVE_AUTOMERGE_DEPLOY"), ("deploy", "APPROVE_AUTOMERGE_DEPLOY")]

        # replaying the same run maps onto the same request id and is skipped
        _, replay_plan, replay = _gate(tmp_path, path, run_metadata, verdict_inputs, calls)
        assert replay_plan.action_request_id == action_plan.action_request_id
        assert len(calls) == 2
        assert replay.adapter_results[0].adapter == "idempotency"

        log = AuditLog(tmp_path / "audit" / "aegis.jsonl")
        assert log.verify_chain() == (True, [])
        assert [e.status for e in log.query(run_id=run_metadata["run_id"])] == [
            "VERIFIED", "VERIFIED",
        ]

    def test_infra_change_is_held(self, tmp_path, policy_dict, run_metadata, verdict_inputs):
        verdict_inputs["change_summary"]["change_flags"]["infra_change"] = True
        verdict_inputs["change_summary"]["touched_paths"].append("infra/cdk/stack.ts")
        path = self._write_policy(tmp_path, policy_dict)
        calls = []

        verdict, action_plan, outcome = _gate(tmp_path, path, run_metadata, verdict_inputs, calls)
        assert verdict["policy_evaluation"]["policy_action"] == "REQUIRE_APPROVAL"
        assert verdict["verdict"]["proposed_action"] == "HOLD_FOR_HUMAN"
        assert "Review infra diff (CDK)" in verdict["verdict"]["recommended_next_steps"]
        assert not action_plan.approved_for_execution
        assert calls == []
        assert outcome.plan.status is PlanStatus.VERIFIED

    def test_degraded_canary_rolls_back(self, tmp_path, policy_dict, run_metadata,
                                        verdict_inputs):
        verdict_inputs["signals"]["canary"] = {
            "passed": True, "error_rate": 0.09, "latency_delta": 40.0,
        }
        path = self._write_policy(tmp_path, policy_dict)
        calls = []

        verdict, action_plan, outcome = _gate(tmp_path, path, run_metadata, verdict_inputs, calls)
        assert verdict["policy_evaluation"]["matched_rules"][0]["rule_id"] == "canary-degraded"
        assert verdict["verdict"]["proposed_action"] == "KILL_AND_ROLLBACK"
        assert "Investigate canary degradation" in verdict["verdict"]["recommended_next_steps"]
        assert action_plan.approved_for_execution
        assert calls == [("merge", "KILL_AND_ROLLBACK"), ("deploy", "KILL_AND_ROLLBACK")]
        assert outcome.succeeded

    def test_learning_mode_policy_never_executes(self, tmp_path, policy_dict, run_metadata,
                                                 verdict_inputs):
        policy_dict["defaults"]["learning_mode"] = True
        verdict_inputs["learning_mode"] = True
        path = self._write_policy(tmp_path, policy_dict)
        calls = []

        verdict, action_plan, outcome = _gate(tmp_path, path, run_metadata, verdict_inputs, calls)
        assert verdict["policy_evaluation"]["proposed_factory_action"] == "HOLD_FOR_HUMAN"
        assert not action_plan.approved_for_execution
        assert calls == []
