"""Action plan, transitions and adapter types."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Union

from ..contracts import PLAN_SCHEMA
from ..errors import InvalidTransitionError


class PlanStatus(str, Enum):
    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    EXECUTED = "EXECUTED"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (PlanStatus.VERIFIED, PlanStatus.FAILED)


ALLOWED_TRANSITIONS = {
    PlanStatus.PROPOSED: {PlanStatus.PROPOSED, PlanStatus.APPROVED, PlanStatus.VERIFIED},
    PlanStatus.APPROVED: {PlanStatus.EXECUTED, PlanStatus.VERIFIED},
    PlanStatus.EXECUTED: {PlanStatus.VERIFIED, PlanStatus.FAILED},
    PlanStatus.VERIFIED: set(),
    PlanStatus.FAILED: set(),
}


class AdapterStatus(str, Enum):
    SUCCESS = "SUCCESS"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class StatusTransition:
    from_status: PlanStatus
    to_status: PlanStatus
    timestamp: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_status.value,
            "to": self.to_status.value,
            "timestamp": self.timestamp,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatusTransition":
        return cls(
            from_status=PlanStatus(data["from"]),
            to_status=PlanStatus(data["to"]),
            timestamp=data["timestamp"],
            reason=data["reason"],
        )


@dataclass
class ActionPlan:
    """Tracked lifecycle of one proposed action.

    Only :meth:`transition_to` changes ``status``, and it only ever appends
    to ``status_transitions``.
    """
    action_request_id: str
    run_id: str
    proposed_action: str
    final_action: str
    confidence: float
    learning_mode: bool
    approved_for_execution: bool
    status: PlanStatus = PlanStatus.PROPOSED
    status_transitions: List[StatusTransition] = field(default_factory=list)

    def transition_to(self, to_status: PlanStatus, timestamp: str, reason: str) -> StatusTransition:
        """Append a transition, enforcing the allowed-transition table.

        Raises:
            InvalidTransitionError: edge not allowed from the current status
        """
        if to_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, to_status.value)
        tr = StatusTransition(self.status, to_status, timestamp, reason)
        self.status_transitions.append(tr)
        self.status = to_status
        return tr

    def copy(self) -> "ActionPlan":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": PLAN_SCHEMA,
            "action_request_id": self.action_request_id,
            "run_id": self.run_id,
            "proposed_action": self.proposed_action,
            "final_action": self.final_action,
            "confidence": self.confidence,
            "learning_mode": self.learning_mode,
            "approved_for_execution": self.approved_for_execution,
            "status": self.status.value,
            "status_transitions": [t.to_dict() for t in self.status_transitions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActionPlan":
        return cls(
            action_request_id=data["action_request_id"],
            run_id=data["run_id"],
            proposed_action=data["proposed_action"],
            final_action=data["final_action"],
            confidence=data["confidence"],
            learning_mode=data["learning_mode"],
            approved_for_execution=data["approved_for_execution"],
            status=PlanStatus(data["status"]),
            status_transitions=[
                StatusTransition.from_dict(t) for t in data.get("status_transitions", [])
            ],
        )


@dataclass(frozen=True)
class AdapterResult:
    adapter: str
    status: AdapterStatus
    timestamp: str
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"adapter": self.adapter, "status": self.status.value, "timestamp": self.timestamp}
        if self.message is not None:
            d["message"] = self.message
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdapterResult":
        return cls(
            adapter=data["adapter"],
            status=AdapterStatus(data["status"]),
            timestamp=data["timestamp"],
            message=data.get("message"),
        )


@dataclass(frozen=True)
class ExecutionContext:
    """What an adapter sees: ids, the verdict and a snapshot of the plan."""
    action_request_id: str
    run_id: str
    verdict: Mapping[str, Any]
    plan: ActionPlan
    now: Callable[[], str]


AdapterReturn = Union[AdapterResult, Mapping[str, Any]]


class Adapter(Protocol):
    """Side-effect executor supplied by the caller (merge, rollback, ...).

    ``execute`` may be a coroutine function or a plain function.
    """
    name: str

    def execute(
        self, action: str, context: ExecutionContext
    ) -> Union[AdapterReturn, Awaitable[AdapterReturn]]:
        ...


@dataclass
class ExecutionOutcome:
    plan: ActionPlan
    adapter_results: List[AdapterResult] = field(default_factory=list)
    audit_entry_hash: str = ""

    @property
    def succeeded(self) -> bool:
        return self.plan.status is PlanStatus.VERIFIED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "adapter_results": [r.to_dict() for r in self.adapter_results],
            "audit_entry_hash": self.audit_entry_hash,
        }
