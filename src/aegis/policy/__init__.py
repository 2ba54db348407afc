"""Policy layer

Evaluates declarative release policies against a signal vector.

Modules:
- signals: SignalVector and the identifier allowlist
- expression: tokenizer, parser and evaluator for `when` conditions
- validation: load-time identifier checks
- engine: evaluate_policy and action mapping
- loader: YAML/JSON policy files
"""

from .engine import (
    build_policy_snapshot,
    evaluate_policy,
    map_policy_action_to_factory_action,
)
from .expression import evaluate, parse, tokenize
from .loader import load_policy
from .signals import ALLOWED_IDENTIFIERS, SignalVector, check_signal_completeness
from .types import (
    EvaluationResult,
    FactoryAction,
    MatchedRule,
    PolicyAction,
    PolicyDefaults,
    PolicyDocument,
    PolicyRule,
    Severity,
)
from .validation import extract_identifiers, validate_policy, validate_policy_identifiers

__all__ = [
    "build_policy_snapshot",
    "evaluate_policy",
    "map_policy_action_to_factory_action",
    "evaluate",
    "parse",
    "tokenize",
    "load_policy",
    "ALLOWED_IDENTIFIERS",
    "SignalVector",
    "check_signal_completeness",
    "EvaluationResult",
    "FactoryAction",
    "MatchedRule",
    "PolicyAction",
    "PolicyDefaults",
    "PolicyDocument",
    "PolicyRule",
    "Severity",
    "extract_identifiers",
    "validate_policy",
    "validate_policy_identifiers",
]
