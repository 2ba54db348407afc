"""Action orchestrator

Plans the verdict's action, executes caller-supplied adapters at most once
per action request, and audits every outcome.

Modules:
- types: ActionPlan, transitions, adapter result and protocol
- idempotency: in-memory and file-backed request-id stores
- adapters: CallableAdapter, TimeoutAdapter
- orchestrator: plan and execute
"""

from .adapters import CallableAdapter, TimeoutAdapter
from .idempotency import FileIdempotencyStore, IdempotencyStore, InMemoryIdempotencyStore
from .orchestrator import ExecuteOptions, build_audit_record, execute, plan
from .types import (
    ALLOWED_TRANSITIONS,
    ActionPlan,
    Adapter,
    AdapterResult,
    AdapterStatus,
    ExecutionContext,
    ExecutionOutcome,
    PlanStatus,
    StatusTransition,
)

__all__ = [
    "CallableAdapter",
    "TimeoutAdapter",
    "FileIdempotencyStore",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "ExecuteOptions",
    "build_audit_record",
    "execute",
    "plan",
    "ALLOWED_TRANSITIONS",
    "ActionPlan",
    "Adapter",
    "AdapterResult",
    "AdapterStatus",
    "ExecutionContext",
    "ExecutionOutcome",
    "PlanStatus",
    "StatusTransition",
]
