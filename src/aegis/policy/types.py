"""Policy document and evaluation result types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple


class PolicyAction(str, Enum):
    """Actions a policy rule may prescribe (``then``)."""
    KILL_AND_ROLLBACK = "KILL_AND_ROLLBACK"
    HOLD_FOR_HUMAN = "HOLD_FOR_HUMAN"
    REQUIRE_APPROVAL = "REQUIRE_APPROVAL"
    ALLOW = "ALLOW"
    NONE = "NONE"


class FactoryAction(str, Enum):
    """Actions the release factory can take."""
    KILL_AND_ROLLBACK = "KILL_AND_ROLLBACK"
    HOLD_FOR_HUMAN = "HOLD_FOR_HUMAN"
    APPROVE_AUTOMERGE_DEPLOY = "APPROVE_AUTOMERGE_DEPLOY"
    NONE = "NONE"


class Severity(str, Enum):
    """Rule severity. Lower rank is more severe."""
    BLOCK = "BLOCK"
    HIGH = "HIGH"
    INFO = "INFO"
    NONE = "NONE"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_SEVERITY_RANK = {
    Severity.BLOCK: 0,
    Severity.HIGH: 1,
    Severity.INFO: 2,
    Severity.NONE: 3,
}

RULE_ACTIONS = (
    PolicyAction.KILL_AND_ROLLBACK,
    PolicyAction.HOLD_FOR_HUMAN,
    PolicyAction.REQUIRE_APPROVAL,
    PolicyAction.ALLOW,
)
RULE_SEVERITIES = (Severity.BLOCK, Severity.HIGH, Severity.INFO)


@dataclass(frozen=True)
class PolicyRule:
    """A single ``when -> then`` rule."""
    id: str
    when: str
    then: PolicyAction
    severity: Severity
    reason: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PolicyRule":
        return cls(
            id=data["id"],
            when=data["when"],
            then=PolicyAction(data["then"]),
            severity=Severity(data["severity"]),
            reason=data["reason"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "when": self.when,
            "then": self.then.value,
            "severity": self.severity.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PolicyDefaults:
    learning_mode: bool = False


@dataclass(frozen=True)
class PolicyDocument:
    """Ordered rule list plus defaults.

    Build from a structurally validated mapping with :meth:`from_dict`; the
    loader and :func:`aegis.policy.engine.evaluate_policy` do that for you.
    """
    version: str
    rules: Tuple[PolicyRule, ...] = ()
    defaults: PolicyDefaults = field(default_factory=PolicyDefaults)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], default_learning_mode: bool = False
    ) -> "PolicyDocument":
        defaults = data.get("defaults") or {}
        return cls(
            version=data["version"],
            rules=tuple(PolicyRule.from_dict(r) for r in data.get("rules", [])),
            defaults=PolicyDefaults(
                learning_mode=defaults.get("learning_mode", default_learning_mode)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "defaults": {"learning_mode": self.defaults.learning_mode},
            "rules": [r.to_dict() for r in self.rules],
        }


@dataclass(frozen=True)
class MatchedRule:
    id: str
    severity: Severity
    action: PolicyAction
    reason: str


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of matching a policy against one signal vector.

    Attributes:
        matched: Matched rules in document order, cut after the first BLOCK
        highest_severity: Most severe matched severity (NONE if no match)
        proposed_action: ``then`` of the winning rule (NONE if no match)
        proposed_factory_action: proposed_action after learning-mode mapping
        policy_version: Version string of the evaluated policy
        learning_mode: Learning mode used for the mapping
    """
    matched: Tuple[MatchedRule, ...]
    highest_severity: Severity
    proposed_action: PolicyAction
    proposed_factory_action: FactoryAction
    policy_version: str = ""
    learning_mode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched": [
                {
                    "id": m.id,
                    "severity": m.severity.value,
                    "action": m.action.value,
                    "reason": m.reason,
                }
                for m in self.matched
            ],
            "highest_severity": self.highest_severity.value,
            "proposed_action": self.proposed_action.value,
            "proposed_factory_action": self.proposed_factory_action.value,
            "policy_version": self.policy_version,
            "learning_mode": self.learning_mode,
        }

    @property
    def matched_ids(self) -> List[str]:
        return [m.id for m in self.matched]
