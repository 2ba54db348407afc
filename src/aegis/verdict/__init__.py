"""Verdict layer

Turns signals and a policy snapshot into a scorecard, a proposed action,
a confidence value and a rationale.

Modules:
- scorecard: dimension scoring, overall score, risk level, confidence
- rationale: blockers, risk flags and recommended next steps
- engine: build_verdict entry point
"""

from .engine import build_verdict, compute_proposed_action, verdict_content_hash
from .rationale import Rationale, build_rationale
from .scorecard import WEIGHTS, Scorecard, compute_confidence, compute_scorecard

__all__ = [
    "build_verdict",
    "compute_proposed_action",
    "verdict_content_hash",
    "Rationale",
    "build_rationale",
    "WEIGHTS",
    "Scorecard",
    "compute_confidence",
    "compute_scorecard",
]
