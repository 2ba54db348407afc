"""Aegis release gate

Policy evaluation, verdict scoring and audited action orchestration for
deciding whether a change may be auto-merged and deployed.

Subpackages:
- policy: expression evaluator, rule matcher, policy loading
- verdict: scorecard, rationale, build_verdict
- orchestrator: plan, execute, idempotency, adapters
- common: hashing, JSON helpers, hash-chained audit log
"""

__version__ = "0.1.0"

from .errors import (
    AegisError,
    AuditWriteError,
    ContractViolationError,
    ExpressionError,
    InvalidTransitionError,
    PolicyDefinitionError,
    SignalInputError,
    VerdictInputError,
)
from .orchestrator import ExecuteOptions, execute, plan
from .policy import build_policy_snapshot, evaluate, evaluate_policy, load_policy
from .verdict import build_verdict

__all__ = [
    "__version__",
    "AegisError",
    "AuditWriteError",
    "ContractViolationError",
    "ExpressionError",
    "InvalidTransitionError",
    "PolicyDefinitionError",
    "SignalInputError",
    "VerdictInputError",
    "ExecuteOptions",
    "execute",
    "plan",
    "build_policy_snapshot",
    "evaluate",
    "evaluate_policy",
    "load_policy",
    "build_verdict",
]
