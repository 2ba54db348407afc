"""Scorecard - multi-dimensional release quality scores

Scores a change on 5 dimensions (each an integer 0-100):
1. tests (25%): CI outcome, adjusted by coverage delta
2. security (25%): zero unless no critical/high findings
3. ops (20%): canary health (neutral 70 when there is no canary)
4. risk (15%): penalties for risky change flags, size and touched paths
5. policy (15%): most severe matched policy rule

overall = round(weighted sum); the risk level comes from overall, then
infra/db-migration flags can raise it.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional

from ..policy.types import RiskLevel

WEIGHTS: Dict[str, float] = {
    "tests": 0.25,
    "security": 0.25,
    "ops": 0.20,
    "risk": 0.15,
    "policy": 0.15,
}

# inclusive lower bounds on overall
LOW_RISK_MIN = 75
MEDIUM_RISK_MIN = 40

CANARY_MAX_ERROR_RATE = 0.02
CANARY_MAX_LATENCY_DELTA = 100

FLAG_PENALTIES: Dict[str, int] = {
    "infra_change": 25,
    "db_migration": 25,
    "auth_change": 15,
    "secrets_change": 20,
    "dependency_change": 10,
    "permission_change": 20,
}
RISKY_PATH_TOKENS = ("infra", "cdk", "terraform", "database", "db", "secrets")


@dataclass(frozen=True)
class Scorecard:
    tests: int
    security: int
    risk: int
    ops: int
    policy: int
    overall: int
    risk_level: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "dimensions": {
                "tests": self.tests,
                "security": self.security,
                "risk": self.risk,
                "ops": self.ops,
                "policy": self.policy,
            },
            "risk_level": self.risk_level,
        }


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def clamp_score(score: float) -> int:
    if score < 0:
        return 0
    if score > 100:
        return 100
    return round_half_up(score)


def clamp01(n: float) -> float:
    return min(1.0, max(0.0, n))


def canary_failed(canary: Optional[Mapping[str, Any]]) -> bool:
    """True if a canary is present and failed, or breached error/latency limits."""
    if not canary:
        return False
    if not canary["passed"]:
        return True
    error_rate = canary.get("error_rate")
    if error_rate is not None and error_rate > CANARY_MAX_ERROR_RATE:
        return True
    latency_delta = canary.get("latency_delta")
    if latency_delta is not None and latency_delta > CANARY_MAX_LATENCY_DELTA:
        return True
    return False


def has_security_findings(security: Mapping[str, Any]) -> bool:
    return security["critical_count"] > 0 or security["high_count"] > 0


def score_tests(ci: Mapping[str, Any]) -> int:
    if ci["status"] == "failure":
        return 0
    score = 90
    delta = ci.get("coverage_delta")
    if delta is not None:
        if delta <= -5:
            score -= 40
        elif delta < 0:
            score -= 15
        elif delta > 0:
            score += 5
    return clamp_score(score)


def score_security(security: Mapping[str, Any]) -> int:
    return 0 if has_security_findings(security) else 90


def score_ops(canary: Optional[Mapping[str, Any]]) -> int:
    if not canary:
        return 70
    return 0 if canary_failed(canary) else 90


def score_risk(change_summary: Mapping[str, Any]) -> int:
    score = 100
    flags = change_summary["change_flags"]
    for flag, penalty in FLAG_PENALTIES.items():
        if flags.get(flag):
            score -= penalty

    files_changed = change_summary["files_changed"]
    if files_changed > 200:
        score -= 20
    elif files_changed > 50:
        score -= 10

    touched = change_summary.get("touched_paths") or []
    if any(token in p for p in touched for token in RISKY_PATH_TOKENS):
        score -= 5

    return clamp_score(score)


def score_policy(policy_evaluation: Mapping[str, Any]) -> int:
    severities = [r["severity"] for r in policy_evaluation["matched_rules"]]
    if "BLOCK" in severities:
        return 0
    if "HIGH" in severities:
        return 60
    if severities:
        return 85
    return 75


def risk_level_from_overall(overall: int) -> str:
    if overall >= LOW_RISK_MIN:
        return RiskLevel.LOW.value
    if overall >= MEDIUM_RISK_MIN:
        return RiskLevel.MEDIUM.value
    return RiskLevel.HIGH.value


def compute_scorecard(
    inputs: Mapping[str, Any], policy_evaluation: Mapping[str, Any]
) -> Scorecard:
    """Score a change from validated verdict inputs and a policy snapshot."""
    signals = inputs["signals"]
    summary = inputs["change_summary"]

    tests = score_tests(signals["ci"])
    security = score_security(signals["security"])
    ops = score_ops(signals.get("canary"))
    risk = score_risk(summary)
    policy = score_policy(policy_evaluation)

    overall = clamp_score(
        tests * WEIGHTS["tests"]
        + security * WEIGHTS["security"]
        + ops * WEIGHTS["ops"]
        + risk * WEIGHTS["risk"]
        + policy * WEIGHTS["policy"]
    )

    risk_level = risk_level_from_overall(overall)
    flags = summary["change_flags"]
    if flags["infra_change"] and flags["db_migration"]:
        risk_level = RiskLevel.HIGH.value
    elif (flags["infra_change"] or flags["db_migration"]) and risk_level == RiskLevel.LOW.value:
        risk_level = RiskLevel.MEDIUM.value

    return Scorecard(
        tests=tests,
        security=security,
        risk=risk,
        ops=ops,
        policy=policy,
        overall=overall,
        risk_level=risk_level,
    )


def compute_confidence(overall: int, risk_level: str) -> float:
    """Confidence in [0, 1], two decimals (half-up)."""
    base = overall / 100
    if risk_level == RiskLevel.LOW:
        confidence = 0.5 + base * 0.5
    elif risk_level == RiskLevel.MEDIUM:
        confidence = base * 0.75
    else:
        confidence = base * 0.5
    rounded = float(Decimal(confidence).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    return clamp01(rounded)
