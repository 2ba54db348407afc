"""Load-time identifier checks for policy documents.

The identifier scan is lexical: quoted spans are blanked, then dotted words
are collected. It is intentionally looser than the expression parser (a rule
may pass here and still fail to parse); the evaluator re-checks every
identifier when a rule runs.
"""
from __future__ import annotations

import re
from typing import Any, List, Mapping, Tuple, Union

from ..errors import PolicyDefinitionError
from ..logger import get_logger
from .signals import ALLOWED_IDENTIFIERS
from .types import PolicyDocument

logger = get_logger(__name__)

_QUOTED_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_KEYWORDS = {"true", "false"}


def _scan_identifiers(when: str) -> List[Tuple[str, int]]:
    # quoted spans are blanked to the same length so offsets stay exact
    blanked = _QUOTED_RE.sub(lambda m: " " * len(m.group()), when)
    return [
        (m.group(), m.start())
        for m in _IDENT_RE.finditer(blanked)
        if m.group() not in _KEYWORDS
    ]


def extract_identifiers(when: str) -> List[str]:
    """Identifiers referenced by a ``when`` string, in order of appearance."""
    return [ident for ident, _ in _scan_identifiers(when)]


def _rule_conditions(policy: Union[PolicyDocument, Mapping[str, Any]]) -> List[Tuple[str, str]]:
    if isinstance(policy, PolicyDocument):
        return [(r.id, r.when) for r in policy.rules]
    pairs = []
    for i, rule in enumerate(policy.get("rules") or []):
        pairs.append((str(rule.get("id", f"rules[{i}]")), str(rule.get("when", ""))))
    return pairs


def _unknown_with_positions(
    policy: Union[PolicyDocument, Mapping[str, Any]]
) -> List[Tuple[str, str, int]]:
    unknown = []
    for rule_id, when in _rule_conditions(policy):
        for ident, position in _scan_identifiers(when):
            if ident not in ALLOWED_IDENTIFIERS:
                unknown.append((rule_id, ident, position))
    return unknown


def find_unknown_identifiers(
    policy: Union[PolicyDocument, Mapping[str, Any]]
) -> List[Tuple[str, str]]:
    """(rule_id, identifier) for every identifier outside the allowlist."""
    return [(rule_id, ident) for rule_id, ident, _ in _unknown_with_positions(policy)]


def validate_policy_identifiers(policy: Union[PolicyDocument, Mapping[str, Any]]) -> List[str]:
    """Return one issue per rule identifier outside the signal allowlist."""
    return [
        f"rule {rule_id}: unknown identifier {ident!r} at position {position}"
        for rule_id, ident, position in _unknown_with_positions(policy)
    ]


def validate_policy(policy: Union[PolicyDocument, Mapping[str, Any]]) -> None:
    """Reject a policy whose rules reference identifiers outside the allowlist.

    Raises:
        PolicyDefinitionError: naming the first offending rule and the
            character position of its first unknown identifier; the message
            lists every issue found
    """
    unknown = _unknown_with_positions(policy)
    if not unknown:
        return

    issues = validate_policy_identifiers(policy)
    logger.error("Policy rejected: %d unknown identifier(s)", len(issues))
    rule_id, _, position = unknown[0]
    raise PolicyDefinitionError(rule_id, "; ".join(issues), position)
