"""Exception hierarchy for the release gate core.

Every failure is raised, never downgraded to a log line:
- input completeness (SignalInputError, VerdictInputError)
- policy definition (ExpressionError family, PolicyDefinitionError)
- schema contract (ContractViolationError)
- execution bookkeeping (InvalidTransitionError, AuditWriteError)
"""
from __future__ import annotations

from typing import List, Optional


class AegisError(Exception):
    """Base class for all release gate errors."""


def _format_issues(header: str, issues: List[str]) -> str:
    return f"{header} ({len(issues)} issues):\n" + "\n".join(f"  - {i}" for i in issues)


class SignalInputError(AegisError):
    """Raised when the signal vector is missing fields or carries bad types."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__(_format_issues("Incomplete signal vector", self.issues))


class VerdictInputError(AegisError):
    """Raised when run metadata or verdict inputs are missing."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__(_format_issues("Invalid verdict input", self.issues))


class ExpressionError(AegisError):
    """Base class for policy expression failures; carries the char position."""

    def __init__(self, message: str, expression: str = "", position: Optional[int] = None):
        self.message = message
        self.expression = expression
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"{message}{where} in expression {expression!r}")


class TokenizeError(ExpressionError):
    """Raised when a character sequence matches no token."""


class ExpressionParseError(ExpressionError):
    """Raised on grammar violations, bare literals and leftover tokens."""


class UnknownIdentifierError(ExpressionError):
    """Raised when an identifier is not on the signal allowlist."""


class PolicyDefinitionError(AegisError):
    """Raised when a policy rule cannot be validated or evaluated."""

    def __init__(self, rule_id: Optional[str], message: str, position: Optional[int] = None):
        self.rule_id = rule_id
        self.message = message
        self.position = position
        rule = f"rule {rule_id!r}" if rule_id else "policy"
        where = f" (position {position})" if position is not None else ""
        super().__init__(f"Invalid {rule}{where}: {message}")


class ContractViolationError(AegisError):
    """Raised when a document violates its structural contract."""

    def __init__(self, contract: str, violations: List[str]):
        self.contract = contract
        self.violations = list(violations)
        super().__init__(_format_issues(f"Contract violation in {contract}", self.violations))


class InvalidTransitionError(AegisError):
    """Raised when a plan is moved along an edge the state machine forbids."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid plan transition: {from_status} -> {to_status}")


class AuditWriteError(AegisError):
    """Raised when an audit record cannot be appended."""
