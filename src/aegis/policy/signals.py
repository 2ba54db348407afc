"""Signal vector: the fully-populated input a policy is evaluated against.

Policy expressions address signals through ten namespaced identifiers; each
maps onto one flat field of :class:`SignalVector`. Nothing is defaulted: a
missing or mistyped field fails the whole evaluation.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Union

from ..errors import SignalInputError

# identifier in `when` -> SignalVector field
SIGNAL_IDENTIFIERS: Dict[str, str] = {
    "ci.status": "ci_status",
    "security.critical_count": "security_critical_count",
    "security.high_count": "security_high_count",
    "change.infra": "infra_change",
    "change.db_migration": "db_migration",
    "change.auth": "auth_change",
    "change.secrets": "secrets_change",
    "change.dependency": "dependency_change",
    "canary.error_rate": "canary_error_rate",
    "canary.latency_delta": "canary_latency_delta",
}

ALLOWED_IDENTIFIERS = frozenset(SIGNAL_IDENTIFIERS)

_STRING_FIELDS = ("ci_status",)
_COUNT_FIELDS = ("security_critical_count", "security_high_count")
_FLAG_FIELDS = (
    "infra_change",
    "db_migration",
    "auth_change",
    "secrets_change",
    "dependency_change",
)
_RATE_FIELDS = ("canary_error_rate", "canary_latency_delta")


@dataclass(frozen=True)
class SignalVector:
    ci_status: str
    security_critical_count: int
    security_high_count: int
    infra_change: bool
    db_migration: bool
    auth_change: bool
    secrets_change: bool
    dependency_change: bool
    canary_error_rate: float
    canary_latency_delta: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SignalVector":
        """Build a vector, raising SignalInputError listing every bad field."""
        issues = check_signal_completeness(data)
        if issues:
            raise SignalInputError(issues)
        return cls(**{name: data[name] for name in cls.__dataclass_fields__})

    def resolve(self, identifier: str) -> Union[str, int, float, bool]:
        """Value for an allowlisted identifier such as ``ci.status``."""
        return getattr(self, SIGNAL_IDENTIFIERS[identifier])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def check_signal_completeness(data: Any) -> List[str]:
    """Return one issue per missing or invalid signal field (empty if valid)."""
    if not isinstance(data, Mapping):
        return ["signals: expected a mapping"]

    issues: List[str] = []

    def _present(name: str) -> bool:
        if name not in data or data[name] is None:
            issues.append(f"{name}: missing")
            return False
        return True

    for name in _STRING_FIELDS:
        if _present(name) and not isinstance(data[name], str):
            issues.append(f"{name}: expected string, got {type(data[name]).__name__}")

    for name in _COUNT_FIELDS:
        if not _present(name):
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, int):
            issues.append(f"{name}: expected integer, got {type(value).__name__}")
        elif value < 0:
            issues.append(f"{name}: must be >= 0, got {value}")

    for name in _FLAG_FIELDS:
        if _present(name) and not isinstance(data[name], bool):
            issues.append(f"{name}: expected boolean, got {type(data[name]).__name__}")

    for name in _RATE_FIELDS:
        if not _present(name):
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            issues.append(f"{name}: expected number, got {type(value).__name__}")

    return issues
