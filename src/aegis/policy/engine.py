"""Policy rule matcher.

Runs a policy's rules in document order against one signal vector:

1. Every rule whose ``when`` holds is recorded as a match
2. The first BLOCK match stops evaluation (later rules never run)
3. The winning rule is the first match at the most severe observed severity
4. The winner's ``then`` is mapped to a factory action (learning mode aware)

Usage:
    result = evaluate_policy(policy, signals)
    snapshot = build_policy_snapshot(result)   # input for build_verdict
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from ..config import Config
from ..contracts_enforcer import ContractEnforcer
from ..errors import ExpressionError, PolicyDefinitionError
from ..logger import get_logger
from .expression import parse
from .signals import SignalVector
from .types import (
    EvaluationResult,
    FactoryAction,
    MatchedRule,
    PolicyAction,
    PolicyDocument,
    Severity,
)
from .validation import validate_policy

logger = get_logger(__name__)


def map_policy_action_to_factory_action(
    action: Union[PolicyAction, str], learning_mode: bool
) -> FactoryAction:
    """Translate a policy-level action into the factory action.

    ============================  ===========================================
    policy action                 factory action
    ============================  ===========================================
    KILL_AND_ROLLBACK             KILL_AND_ROLLBACK
    HOLD_FOR_HUMAN                HOLD_FOR_HUMAN
    REQUIRE_APPROVAL              HOLD_FOR_HUMAN
    ALLOW                         HOLD_FOR_HUMAN in learning mode, else
                                  APPROVE_AUTOMERGE_DEPLOY
    NONE                          NONE
    ============================  ===========================================

    Raises:
        PolicyDefinitionError: for a value outside PolicyAction
    """
    try:
        action = PolicyAction(action)
    except ValueError:
        # document validation should make this unreachable
        logger.error("Invariant breach: unrecognised policy action %r", action)
        raise PolicyDefinitionError(None, f"Unrecognised policy action {action!r}") from None

    if action is PolicyAction.KILL_AND_ROLLBACK:
        return FactoryAction.KILL_AND_ROLLBACK
    if action in (PolicyAction.HOLD_FOR_HUMAN, PolicyAction.REQUIRE_APPROVAL):
        return FactoryAction.HOLD_FOR_HUMAN
    if action is PolicyAction.ALLOW:
        return FactoryAction.HOLD_FOR_HUMAN if learning_mode else FactoryAction.APPROVE_AUTOMERGE_DEPLOY
    return FactoryAction.NONE


def coerce_policy(
    policy: Union[PolicyDocument, Mapping[str, Any]],
    enforcer: Optional[ContractEnforcer] = None,
) -> PolicyDocument:
    """Validate a policy and return it as a PolicyDocument.

    Raw mappings get the structural contract check first. Every rule of
    either form is checked against the identifier allowlist before any rule
    runs.
    """
    if isinstance(policy, PolicyDocument):
        validate_policy(policy)
        return policy
    enforcer = enforcer or ContractEnforcer()
    enforcer.check_policy(dict(policy))
    validate_policy(policy)
    return PolicyDocument.from_dict(policy, default_learning_mode=Config.policy.LEARNING_MODE)


def evaluate_policy(
    policy: Union[PolicyDocument, Mapping[str, Any]],
    signals: Union[SignalVector, Mapping[str, Any]],
    learning_mode: Optional[bool] = None,
    enforcer: Optional[ContractEnforcer] = None,
) -> EvaluationResult:
    """Match a policy against a fully-populated signal vector.

    Args:
        policy: PolicyDocument or raw policy mapping
        signals: SignalVector or mapping with every signal field
        learning_mode: Overrides ``policy.defaults.learning_mode`` when given
        enforcer: Contract enforcer for raw policy mappings

    Returns:
        A fresh EvaluationResult

    Raises:
        SignalInputError: signal vector incomplete (before any rule runs)
        PolicyDefinitionError: a rule's ``when`` cannot be tokenized, parsed
            or references an unknown identifier
        ContractViolationError: raw policy mapping is malformed
    """
    if not isinstance(signals, SignalVector):
        signals = SignalVector.from_dict(signals)
    doc = coerce_policy(policy, enforcer)
    if learning_mode is None:
        learning_mode = doc.defaults.learning_mode

    matched = []
    for rule in doc.rules:
        try:
            hit = parse(rule.when).evaluate(signals)
        except ExpressionError as e:
            logger.error("Rule %s failed to evaluate: %s", rule.id, e)
            raise PolicyDefinitionError(rule.id, e.message, e.position) from e

        if not hit:
            continue
        logger.debug("Rule %s matched (%s)", rule.id, rule.severity.value)
        matched.append(MatchedRule(rule.id, rule.severity, rule.then, rule.reason))
        if rule.severity is Severity.BLOCK:
            break

    if not matched:
        logger.info("Policy %s: no rules matched", doc.version)
        return EvaluationResult(
            matched=(),
            highest_severity=Severity.NONE,
            proposed_action=PolicyAction.NONE,
            proposed_factory_action=FactoryAction.NONE,
            policy_version=doc.version,
            learning_mode=learning_mode,
        )

    winner = matched[0]
    for m in matched[1:]:
        if m.severity.rank < winner.severity.rank:
            winner = m

    factory_action = map_policy_action_to_factory_action(winner.action, learning_mode)
    logger.info(
        "Policy %s: %d match(es), winner=%s severity=%s action=%s -> %s",
        doc.version, len(matched), winner.id, winner.severity.value,
        winner.action.value, factory_action.value,
    )
    return EvaluationResult(
        matched=tuple(matched),
        highest_severity=winner.severity,
        proposed_action=winner.action,
        proposed_factory_action=factory_action,
        policy_version=doc.version,
        learning_mode=learning_mode,
    )


def build_policy_snapshot(result: EvaluationResult) -> Dict[str, Any]:
    """Plain snapshot of an evaluation, as embedded in the verdict document."""
    return {
        "matched_rules": [
            {
                "rule_id": m.id,
                "severity": m.severity.value,
                "then": m.action.value,
                "reason": m.reason,
            }
            for m in result.matched
        ],
        "policy_action": result.proposed_action.value,
        "proposed_factory_action": result.proposed_factory_action.value,
        "policy_version": result.policy_version,
        "highest_severity": result.highest_severity.value,
    }
