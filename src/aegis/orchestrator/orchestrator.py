"""Action orchestrator: verdict -> plan -> audited, idempotent execution.

State machine::

    PROPOSED -> APPROVED -> EXECUTED -> VERIFIED
                                     \\-> FAILED

``plan`` is pure: it gates the proposed action on learning mode and the
auto-execute confidence threshold. ``execute`` runs caller-supplied
adapters strictly in order, stops at the first failure, and writes exactly
one audit record on every exit path.

Usage:
    action_plan = plan(verdict, auto_execute_min_confidence=0.85)
    outcome = asyncio.run(execute(verdict, action_plan, [merge_adapter], options))
    print(outcome.plan.status, [r.status for r in outcome.adapter_results])
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..common.audit_log import AuditLog
from ..common.hashing import stable_action_request_id
from ..config import Config
from ..contracts import ADAPTER_RESULT_KEYS, AUDIT_SCHEMA, validate_adapter_result
from ..contracts_enforcer import ContractEnforcer
from ..errors import InvalidTransitionError
from ..logger import get_logger
from ..verdict.engine import verdict_content_hash
from .idempotency import FileIdempotencyStore, InMemoryIdempotencyStore, claim
from .types import (
    ActionPlan,
    Adapter,
    AdapterResult,
    AdapterStatus,
    ExecutionContext,
    ExecutionOutcome,
    PlanStatus,
)

logger = get_logger(__name__)

ROLLBACK = "KILL_AND_ROLLBACK"
HOLD = "HOLD_FOR_HUMAN"
APPROVE = "APPROVE_AUTOMERGE_DEPLOY"

REASON_LEARNING_MODE = "learning mode: auto-execution disabled"
REASON_CONFIDENCE_MET = "confidence meets auto-execute threshold"
REASON_CONFIDENCE_LOW = "confidence below auto-execute threshold"
REASON_ROLLBACK = "rollback approved for automatic execution"
REASON_HUMAN_HOLD = "held for human review"
REASON_DRY_RUN = "dry-run"
REASON_NO_AUTO_EXEC = "no auto-exec"
REASON_ALREADY_EXECUTED = "already executed (idempotent skip)"
REASON_EXECUTING = "executing adapters"
REASON_ALL_SUCCEEDED = "all adapters succeeded"

IDEMPOTENCY_ADAPTER = "idempotency"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ExecuteOptions:
    """Knobs for :func:`execute`.

    Attributes:
        dry_run: Record the plan as VERIFIED without invoking adapters
        audit_path: JSONL audit file (AEGIS_AUDIT_PATH when None)
        audit_log: Pre-built AuditLog; takes precedence over audit_path
        idempotency_store: Shared has/add (or claim) store; when None a
            FileIdempotencyStore under AEGIS_IDEMPOTENCY_DIR, else a fresh
            in-memory store that only protects this one call
        now: Clock returning ISO-8601 timestamps
        enforcer: Contract enforcer for verdict, plan and audit record
    """
    dry_run: bool = False
    audit_path: Optional[Union[str, Path]] = None
    audit_log: Optional[AuditLog] = None
    idempotency_store: Any = None
    now: Optional[Callable[[], str]] = None
    enforcer: Optional[ContractEnforcer] = None


def plan(
    verdict: Mapping[str, Any],
    auto_execute_min_confidence: Optional[float] = None,
    now: Optional[Callable[[], str]] = None,
    enforcer: Optional[ContractEnforcer] = None,
) -> ActionPlan:
    """Gate a verdict's proposed action and open its plan.

    - APPROVE_AUTOMERGE_DEPLOY: held in learning mode; otherwise approved only
      when confidence >= threshold, else held
    - KILL_AND_ROLLBACK: approved unless in learning mode (no confidence gate)
    - HOLD_FOR_HUMAN: never approved

    Args:
        verdict: Verdict document from build_verdict
        auto_execute_min_confidence: Threshold in [0, 1]
            (AEGIS_AUTO_EXECUTE_MIN_CONFIDENCE when None)
        now: Clock for the first transition timestamp
        enforcer: Contract enforcer

    Returns:
        ActionPlan with exactly one transition (PROPOSED->APPROVED, or
        PROPOSED->PROPOSED when not approved)

    Raises:
        ContractViolationError: verdict malformed
        ValueError: threshold outside [0, 1]
    """
    enforcer = enforcer or ContractEnforcer()
    enforcer.check_verdict(dict(verdict))

    threshold = auto_execute_min_confidence
    if threshold is None:
        threshold = Config.orchestrator.AUTO_EXECUTE_MIN_CONFIDENCE
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"auto_execute_min_confidence must be within [0, 1], got {threshold}")
    now = now or utc_now

    proposed = verdict["verdict"]["proposed_action"]
    confidence = verdict["verdict"]["confidence"]
    learning_mode = verdict["inputs"]["learning_mode"]
    run_id = verdict["run"]["run_id"]

    final_action = proposed
    approved = False
    if proposed == APPROVE:
        if learning_mode:
            final_action, reason = HOLD, REASON_LEARNING_MODE
        elif confidence >= threshold:
            approved, reason = True, REASON_CONFIDENCE_MET
        else:
            final_action, reason = HOLD, REASON_CONFIDENCE_LOW
    elif proposed == ROLLBACK:
        if learning_mode:
            reason = REASON_LEARNING_MODE
        else:
            approved, reason = True, REASON_ROLLBACK
    else:
        reason = REASON_HUMAN_HOLD

    action_plan = ActionPlan(
        action_request_id=stable_action_request_id(
            run_id, verdict_content_hash(verdict), final_action
        ),
        run_id=run_id,
        proposed_action=proposed,
        final_action=final_action,
        confidence=confidence,
        learning_mode=learning_mode,
        approved_for_execution=approved,
    )
    action_plan.transition_to(
        PlanStatus.APPROVED if approved else PlanStatus.PROPOSED, now(), reason
    )
    enforcer.check_plan(action_plan.to_dict())

    logger.info(
        "Plan %s for run %s: %s -> %s (approved=%s, confidence=%.2f, threshold=%.2f)",
        action_plan.action_request_id, run_id, proposed, final_action,
        approved, confidence, threshold,
    )
    return action_plan


def _invalid(name: str, issues: List[str], now: Callable[[], str]) -> AdapterResult:
    logger.error("Adapter %s returned an invalid result: %s", name, "; ".join(issues))
    return AdapterResult(
        name, AdapterStatus.FAILED, now(), message="invalid adapter result: " + "; ".join(issues)
    )


def _coerce_result(name: str, returned: Any, now: Callable[[], str]) -> AdapterResult:
    """Normalise an adapter's return value into a contract-valid AdapterResult.

    Anything that would not survive the audit record contract becomes a FAILED
    result, so the plan still reaches a terminal state and gets audited.
    """
    if isinstance(returned, AdapterResult):
        if not isinstance(returned.status, AdapterStatus):
            return _invalid(name, [f"status: expected AdapterStatus, got "
                                   f"{type(returned.status).__name__}"], now)
        issues = validate_adapter_result(returned.to_dict())
        return _invalid(name, issues, now) if issues else returned
    if isinstance(returned, Mapping):
        data = {"adapter": name, "timestamp": now()}
        data.update((k, v) for k, v in returned.items() if k in ADAPTER_RESULT_KEYS)
        issues = validate_adapter_result(data)
        if issues:
            return _invalid(name, issues, now)
        return AdapterResult.from_dict(data)
    return _invalid(name, [f"unexpected return type {type(returned).__name__}"], now)


async def _run_adapter(
    adapter: Adapter, action: str, context: ExecutionContext, now: Callable[[], str]
) -> AdapterResult:
    name = getattr(adapter, "name", None)
    if not isinstance(name, str) or not name.strip():
        name = type(adapter).__name__
    try:
        returned = adapter.execute(action, context)
        if inspect.isawaitable(returned):
            returned = await returned
    except Exception as e:
        logger.error("Adapter %s raised during %s", name, action, exc_info=True)
        return AdapterResult(name, AdapterStatus.FAILED, now(), message=f"{type(e).__name__}: {e}")
    return _coerce_result(name, returned, now)


def _resolve_store(options: ExecuteOptions):
    if options.idempotency_store is not None:
        return options.idempotency_store
    if Config.orchestrator.IDEMPOTENCY_DIR:
        return FileIdempotencyStore(Config.orchestrator.IDEMPOTENCY_DIR)
    logger.warning("No idempotency store supplied; duplicates are only caught within this call")
    return InMemoryIdempotencyStore()


def build_audit_record(
    action_plan: ActionPlan,
    verdict_hash: str,
    results: Sequence[AdapterResult],
    dry_run: bool,
    timestamp: str,
) -> Dict[str, Any]:
    plan_dict = action_plan.to_dict()
    plan_dict.pop("schema_version")
    record = {
        "schema_version": AUDIT_SCHEMA,
        "timestamp": timestamp,
        "verdict_hash": verdict_hash,
        "dry_run": dry_run,
        "adapter_results": [r.to_dict() for r in results],
    }
    record.update(plan_dict)
    return record


async def execute(
    verdict: Mapping[str, Any],
    action_plan: ActionPlan,
    adapters: Sequence[Adapter],
    options: Optional[ExecuteOptions] = None,
) -> ExecutionOutcome:
    """Drive a plan to a terminal state and audit the outcome.

    Exit paths (each writes exactly one audit record):
    1. Human hold, not approved, or dry run -> VERIFIED, no adapters run
    2. Request id already claimed -> synthetic SKIPPED result, VERIFIED
    3. An adapter fails or raises -> FAILED, later adapters never run
    4. Every adapter succeeds -> VERIFIED

    The plan passed in is not modified; the outcome carries the advanced copy.

    Raises:
        ContractViolationError: verdict, plan or audit record malformed
        InvalidTransitionError: plan is not PROPOSED or APPROVED
        ValueError: plan belongs to a different run than the verdict
        AuditWriteError: audit record could not be written
    """
    options = options or ExecuteOptions()
    enforcer = options.enforcer or ContractEnforcer()
    enforcer.check_verdict(dict(verdict))
    enforcer.check_plan(action_plan.to_dict())

    if action_plan.run_id != verdict["run"]["run_id"]:
        raise ValueError(
            f"Plan run_id {action_plan.run_id} does not match verdict run_id "
            f"{verdict['run']['run_id']}"
        )
    if action_plan.status not in (PlanStatus.PROPOSED, PlanStatus.APPROVED):
        raise InvalidTransitionError(action_plan.status.value, PlanStatus.EXECUTED.value)

    now = options.now or utc_now
    audit_log = options.audit_log or AuditLog(
        Path(options.audit_path or Config.orchestrator.AUDIT_PATH), enforcer
    )
    verdict_hash = verdict_content_hash(verdict)
    current = action_plan.copy()
    request_id = current.action_request_id
    results: List[AdapterResult] = []

    def finish() -> ExecutionOutcome:
        record = build_audit_record(current, verdict_hash, results, options.dry_run, now())
        entry = audit_log.append(record)
        logger.info(
            "Execution %s finished: %s (%d adapter result(s))",
            request_id, current.status.value, len(results),
        )
        return ExecutionOutcome(current, list(results), entry.entry_hash)

    if current.final_action == HOLD or not current.approved_for_execution or options.dry_run:
        reason = REASON_DRY_RUN if options.dry_run else REASON_NO_AUTO_EXEC
        current.transition_to(PlanStatus.VERIFIED, now(), reason)
        return finish()

    store = _resolve_store(options)
    if not claim(store, request_id):
        logger.info("Request %s already executed; skipping adapters", request_id)
        results.append(AdapterResult(
            IDEMPOTENCY_ADAPTER,
            AdapterStatus.SKIPPED,
            now(),
            message=f"action request {request_id} already executed",
        ))
        current.transition_to(PlanStatus.VERIFIED, now(), REASON_ALREADY_EXECUTED)
        return finish()

    current.transition_to(PlanStatus.EXECUTED, now(), REASON_EXECUTING)

    failure: Optional[AdapterResult] = None
    for adapter in adapters:
        context = ExecutionContext(
            action_request_id=request_id,
            run_id=current.run_id,
            verdict=verdict,
            plan=current.copy(),
            now=now,
        )
        result = await _run_adapter(adapter, current.final_action, context, now)
        results.append(result)
        logger.info("Adapter %s: %s", result.adapter, result.status.value)
        if result.status is AdapterStatus.FAILED:
            failure = result
            break

    if failure is not None:
        current.transition_to(
            PlanStatus.FAILED,
            now(),
            f"adapter {failure.adapter} failed: {failure.message or 'no message'}",
        )
    else:
        current.transition_to(PlanStatus.VERIFIED, now(), REASON_ALL_SUCCEEDED)
    return finish()
