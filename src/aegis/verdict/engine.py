"""Verdict engine: signals + policy snapshot -> scored, self-validated verdict.

Steps:
1. Assert inputs (every missing field is reported, nothing is defaulted)
2. Compute the scorecard and confidence
3. Derive the proposed action from the policy, then apply hard overrides
4. Build the rationale and validate the finished document

Usage:
    result = evaluate_policy(policy, signal_vector)
    verdict = build_verdict(run, inputs, build_policy_snapshot(result))
    print(verdict["verdict"]["proposed_action"], verdict["verdict"]["confidence"])
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional

from ..common.hashing import content_hash
from ..contracts import (
    POLICY_SCHEMA,
    VERDICT_SCHEMA,
    validate_policy_snapshot,
    validate_run_metadata,
    validate_verdict_inputs,
)
from ..contracts_enforcer import ContractEnforcer
from ..errors import VerdictInputError
from ..logger import get_logger
from .rationale import build_rationale
from .scorecard import (
    MEDIUM_RISK_MIN,
    Scorecard,
    canary_failed,
    compute_confidence,
    compute_scorecard,
    has_security_findings,
)

logger = get_logger(__name__)

ROLLBACK = "KILL_AND_ROLLBACK"
HOLD = "HOLD_FOR_HUMAN"
APPROVE = "APPROVE_AUTOMERGE_DEPLOY"


def assert_inputs(run: Any, inputs: Any, policy_evaluation: Any) -> None:
    """Fail fast on missing/invalid run metadata, inputs or policy snapshot.

    Raises:
        VerdictInputError: listing every offending field
    """
    issues = (
        validate_run_metadata(run)
        + validate_verdict_inputs(inputs)
        + validate_policy_snapshot(policy_evaluation)
    )
    if issues:
        logger.error("Verdict input rejected: %d issue(s)", len(issues))
        raise VerdictInputError(issues)


def compute_proposed_action(
    policy_evaluation: Mapping[str, Any],
    inputs: Mapping[str, Any],
    scorecard: Scorecard,
) -> str:
    """Policy action with hard overrides applied in a fixed order.

    Rollback overrides (CI failure, canary failure, security findings) are
    unconditional; the hold overrides only ever soften an auto-approval.
    """
    action = policy_evaluation["proposed_factory_action"]
    if action == "NONE":
        action = HOLD

    signals = inputs["signals"]
    if signals["ci"]["status"] == "failure":
        action = ROLLBACK
    if canary_failed(signals.get("canary")):
        action = ROLLBACK
    if has_security_findings(signals["security"]):
        action = ROLLBACK

    if inputs["learning_mode"] and action == APPROVE:
        action = HOLD
    if scorecard.overall < MEDIUM_RISK_MIN and action == APPROVE:
        action = HOLD

    return action


def build_verdict(
    run: Mapping[str, Any],
    inputs: Mapping[str, Any],
    policy_evaluation: Mapping[str, Any],
    enforcer: Optional[ContractEnforcer] = None,
) -> Dict[str, Any]:
    """Build the verdict document for one run.

    Args:
        run: run_id, repo, pr_number, head_sha, timestamp_utc
        inputs: learning_mode, change_summary, signals (ci, security, canary?)
        policy_evaluation: snapshot from build_policy_snapshot
        enforcer: Contract enforcer used for the final document check

    Returns:
        Verdict document (plain dict; inputs are deep-copied into it)

    Raises:
        VerdictInputError: required input missing or malformed
        ContractViolationError: the finished document breaks its contract
    """
    assert_inputs(run, inputs, policy_evaluation)
    enforcer = enforcer or ContractEnforcer()

    scorecard = compute_scorecard(inputs, policy_evaluation)
    action = compute_proposed_action(policy_evaluation, inputs, scorecard)
    confidence = compute_confidence(scorecard.overall, scorecard.risk_level)
    rationale = build_rationale(inputs, policy_evaluation, scorecard, action)

    verdict = {
        "schema_version": VERDICT_SCHEMA,
        "policy_version": policy_evaluation.get("policy_version") or POLICY_SCHEMA,
        "run": copy.deepcopy(dict(run)),
        "inputs": copy.deepcopy(dict(inputs)),
        "policy_evaluation": copy.deepcopy(dict(policy_evaluation)),
        "scorecard": scorecard.to_dict(),
        "verdict": {
            "proposed_action": action,
            "confidence": confidence,
            "recommended_next_steps": rationale.recommended_next_steps,
        },
        "rationale": {
            "summary": rationale.summary,
            "key_evidence_refs": rationale.key_evidence_refs,
        },
    }

    enforcer.check_verdict(verdict)
    logger.info(
        "Verdict for run %s: %s (score=%d %s, confidence=%.2f)",
        run["run_id"], action, scorecard.overall, scorecard.risk_level, confidence,
    )
    return verdict


def verdict_content_hash(verdict: Mapping[str, Any]) -> str:
    """SHA256 over the canonical JSON form of a verdict document."""
    return content_hash(verdict)
