"""Rationale: blockers, risk flags and recommended next steps for a verdict.

Output is fully deterministic: blockers and flags are checked in a fixed
order, each contributes a fixed step, and duplicate steps are dropped while
keeping first-seen order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping

from .scorecard import Scorecard, canary_failed, has_security_findings

# (flag, next step), in reporting order
RISK_FLAG_STEPS = (
    ("infra_change", "Review infra diff (CDK)"),
    ("db_migration", "Add migration rollback plan"),
    ("auth_change", "Review auth changes"),
    ("secrets_change", "Verify secrets handling"),
    ("dependency_change", "Confirm dependency bumps are intended"),
    ("permission_change", "Validate permission changes"),
)


@dataclass
class Rationale:
    summary: str
    key_evidence_refs: List[str] = field(default_factory=list)
    recommended_next_steps: List[str] = field(default_factory=list)
    blockers: List[str] = field(default_factory=list)
    risk_flags: List[str] = field(default_factory=list)


def dedupe_strings(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


def build_rationale(
    inputs: Mapping[str, Any],
    policy_evaluation: Mapping[str, Any],
    scorecard: Scorecard,
    action: str,
) -> Rationale:
    blockers: List[str] = []
    risk_flags: List[str] = []
    steps: List[str] = []
    signals = inputs["signals"]

    if signals["ci"]["status"] == "failure":
        blockers.append("CI failed")
        steps.append("Fix CI failures and rerun checks")
    if canary_failed(signals.get("canary")):
        blockers.append("Canary failed")
        steps.append("Investigate canary degradation")
    if has_security_findings(signals["security"]):
        blockers.append("Security findings present")
        steps.append("Resolve security critical/high findings")
    if any(r["severity"] == "BLOCK" for r in policy_evaluation["matched_rules"]):
        blockers.append("Policy BLOCK rule matched")
        steps.append("Address policy BLOCK conditions")

    flags = inputs["change_summary"]["change_flags"]
    for flag, step in RISK_FLAG_STEPS:
        if flags.get(flag):
            risk_flags.append(flag)
            steps.append(step)

    coverage_delta = signals["ci"].get("coverage_delta")
    if coverage_delta is not None and coverage_delta < 0:
        steps.append("Address coverage regressions")

    parts = [
        f"Action={action}",
        f"Score={scorecard.overall} ({scorecard.risk_level})",
        f"Policy={policy_evaluation['policy_action']}",
    ]
    if blockers:
        parts.append(f"Blockers={', '.join(blockers)}")
    if risk_flags:
        parts.append(f"Risks={', '.join(risk_flags)}")

    refs = [c["url"] for c in signals["ci"].get("checks") or [] if c.get("url")][:1]

    return Rationale(
        summary="; ".join(parts),
        key_evidence_refs=refs,
        recommended_next_steps=dedupe_strings(steps),
        blockers=blockers,
        risk_flags=risk_flags,
    )
