"""Document contracts and structural validators.

Stable schema versions plus validators for every document that crosses a
module boundary: policy documents, verdicts, action plans and audit records.
Each validator returns a list of ``"<path>: <problem>"`` issues (empty when
valid) so callers see every violation at once.

This module depends on nothing else in the package; enum values are
restated here as plain strings.
"""

from typing import Any, Dict, Iterable, List, Optional

POLICY_SCHEMA = "aegis.policy.v1"
VERDICT_SCHEMA = "aegis.verdict.v1"
PLAN_SCHEMA = "aegis.plan.v1"
AUDIT_SCHEMA = "aegis.audit.v1"

RULE_ACTIONS = {"KILL_AND_ROLLBACK", "HOLD_FOR_HUMAN", "REQUIRE_APPROVAL", "ALLOW"}
POLICY_ACTIONS = RULE_ACTIONS | {"NONE"}
RULE_SEVERITIES = {"BLOCK", "HIGH", "INFO"}
SEVERITIES = RULE_SEVERITIES | {"NONE"}
FACTORY_ACTIONS = {"KILL_AND_ROLLBACK", "HOLD_FOR_HUMAN", "APPROVE_AUTOMERGE_DEPLOY"}
SNAPSHOT_FACTORY_ACTIONS = FACTORY_ACTIONS | {"NONE"}
RISK_LEVELS = {"LOW", "MEDIUM", "HIGH"}
CI_STATUSES = {"success", "failure", "pending", "cancelled"}
PLAN_STATUSES = {"PROPOSED", "APPROVED", "EXECUTED", "VERIFIED", "FAILED"}
TERMINAL_PLAN_STATUSES = {"VERIFIED", "FAILED"}
ADAPTER_STATUSES = {"SUCCESS", "SKIPPED", "FAILED"}
ADAPTER_RESULT_KEYS = {"adapter", "status", "message", "timestamp"}

SCORE_DIMENSIONS = ("tests", "security", "risk", "ops", "policy")
CHANGE_FLAGS = (
    "infra_change",
    "db_migration",
    "auth_change",
    "secrets_change",
    "dependency_change",
    "permission_change",
)

POLICY_TOP_LEVEL = {"version", "defaults", "rules"}
POLICY_RULE_KEYS = {"id", "when", "then", "severity", "reason"}

RUN_REQUIRED = ("run_id", "repo", "pr_number", "head_sha", "timestamp_utc")

VERDICT_TOP_LEVEL = {
    "schema_version",
    "policy_version",
    "run",
    "inputs",
    "policy_evaluation",
    "scorecard",
    "verdict",
    "rationale",
}

PLAN_KEYS = {
    "schema_version",
    "action_request_id",
    "run_id",
    "proposed_action",
    "final_action",
    "confidence",
    "learning_mode",
    "approved_for_execution",
    "status",
    "status_transitions",
}

AUDIT_KEYS = {
    "schema_version",
    "timestamp",
    "action_request_id",
    "run_id",
    "verdict_hash",
    "proposed_action",
    "final_action",
    "confidence",
    "learning_mode",
    "approved_for_execution",
    "status",
    "dry_run",
    "status_transitions",
    "adapter_results",
    "prev_hash",
    "entry_hash",
}

_KIND_NAMES = {
    "str": "string",
    "int": "integer",
    "number": "number",
    "bool": "boolean",
    "list": "list",
    "dict": "object",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _join(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


def _is_kind(value: Any, kind: str) -> bool:
    if kind == "bool":
        return isinstance(value, bool)
    if kind == "int":
        return isinstance(value, int) and not isinstance(value, bool)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "str":
        return isinstance(value, str)
    if kind == "list":
        return isinstance(value, list)
    if kind == "dict":
        return isinstance(value, dict)
    raise ValueError(f"unknown kind: {kind}")


def _field(
    obj: Dict[str, Any],
    key: str,
    kind: str,
    path: str,
    issues: List[str],
    required: bool = True,
) -> Optional[Any]:
    """Return obj[key] if present and of the right kind, else record an issue."""
    full = _join(path, key)
    if key not in obj:
        if required:
            issues.append(f"{full}: missing")
        return None
    value = obj[key]
    if not _is_kind(value, kind):
        issues.append(f"{full}: expected {_KIND_NAMES[kind]}, got {type(value).__name__}")
        return None
    return value


def _nonempty(value: Optional[str], full: str, issues: List[str]) -> None:
    if value is not None and not value.strip():
        issues.append(f"{full}: must not be empty")


def _one_of(value: Any, allowed: Iterable[str], full: str, issues: List[str]) -> None:
    if value is not None and value not in allowed:
        issues.append(f"{full}: {value!r} not in {sorted(allowed)}")


def _between(value: Any, lo: float, hi: float, full: str, issues: List[str]) -> None:
    if value is not None and not lo <= value <= hi:
        issues.append(f"{full}: {value} outside [{lo}, {hi}]")


def _no_unknown(obj: Dict[str, Any], allowed: Iterable[str], path: str, issues: List[str]) -> None:
    for key in sorted(set(obj) - set(allowed)):
        issues.append(f"{_join(path, key)}: unknown property")


def _string_list(value: Optional[list], full: str, issues: List[str]) -> None:
    for i, item in enumerate(value or []):
        if not isinstance(item, str):
            issues.append(f"{_join(full, i)}: expected string, got {type(item).__name__}")


# ---------------------------------------------------------------------------
# Policy documents
# ---------------------------------------------------------------------------

def validate_policy_document(doc: Any) -> List[str]:
    """Validate policy structure: required fields, enums, no unknown keys."""
    if not isinstance(doc, dict):
        return ["policy is not a dict"]

    issues: List[str] = []
    _no_unknown(doc, POLICY_TOP_LEVEL, "", issues)
    _nonempty(_field(doc, "version", "str", "", issues), "version", issues)

    defaults = _field(doc, "defaults", "dict", "", issues, required=False)
    if defaults is not None:
        _no_unknown(defaults, {"learning_mode"}, "defaults", issues)
        _field(defaults, "learning_mode", "bool", "defaults", issues, required=False)

    rules = _field(doc, "rules", "list", "", issues)
    seen_ids = set()
    for i, rule in enumerate(rules or []):
        prefix = _join("rules", i)
        if not isinstance(rule, dict):
            issues.append(f"{prefix}: expected object")
            continue
        _no_unknown(rule, POLICY_RULE_KEYS, prefix, issues)

        rule_id = _field(rule, "id", "str", prefix, issues)
        _nonempty(rule_id, _join(prefix, "id"), issues)
        if rule_id:
            if rule_id in seen_ids:
                issues.append(f"{_join(prefix, 'id')}: duplicate rule id {rule_id!r}")
            seen_ids.add(rule_id)

        _nonempty(_field(rule, "when", "str", prefix, issues), _join(prefix, "when"), issues)
        _one_of(_field(rule, "then", "str", prefix, issues), RULE_ACTIONS,
                _join(prefix, "then"), issues)
        _one_of(_field(rule, "severity", "str", prefix, issues), RULE_SEVERITIES,
                _join(prefix, "severity"), issues)
        _field(rule, "reason", "str", prefix, issues)

    return issues


# ---------------------------------------------------------------------------
# Verdict documents
# ---------------------------------------------------------------------------

def validate_run_metadata(run: Any, path: str = "run") -> List[str]:
    """Validate run metadata (id, repo, PR number, head SHA, timestamp)."""
    if not isinstance(run, dict):
        return [f"{path}: expected object"]

    issues: List[str] = []
    _no_unknown(run, RUN_REQUIRED, path, issues)
    for key in ("run_id", "repo", "head_sha", "timestamp_utc"):
        _nonempty(_field(run, key, "str", path, issues), _join(path, key), issues)
    pr_number = _field(run, "pr_number", "int", path, issues)
    if pr_number is not None and pr_number < 1:
        issues.append(f"{_join(path, 'pr_number')}: must be >= 1")
    return issues


def validate_verdict_inputs(inputs: Any, path: str = "inputs") -> List[str]:
    """Validate learning mode, change summary and CI/security/canary signals."""
    if not isinstance(inputs, dict):
        return [f"{path}: expected object"]

    issues: List[str] = []
    _no_unknown(inputs, {"learning_mode", "change_summary", "signals"}, path, issues)
    _field(inputs, "learning_mode", "bool", path, issues)

    cs_path = _join(path, "change_summary")
    summary = _field(inputs, "change_summary", "dict", path, issues)
    if summary is not None:
        _no_unknown(summary, {"files_changed", "change_flags", "touched_paths"}, cs_path, issues)
        files_changed = _field(summary, "files_changed", "int", cs_path, issues)
        if files_changed is not None and files_changed < 0:
            issues.append(f"{_join(cs_path, 'files_changed')}: must be >= 0")
        flags_path = _join(cs_path, "change_flags")
        flags = _field(summary, "change_flags", "dict", cs_path, issues)
        if flags is not None:
            _no_unknown(flags, CHANGE_FLAGS, flags_path, issues)
            for flag in CHANGE_FLAGS:
                _field(flags, flag, "bool", flags_path, issues)
        paths = _field(summary, "touched_paths", "list", cs_path, issues, required=False)
        _string_list(paths, _join(cs_path, "touched_paths"), issues)

    sig_path = _join(path, "signals")
    signals = _field(inputs, "signals", "dict", path, issues)
    if signals is not None:
        _no_unknown(signals, {"ci", "security", "canary"}, sig_path, issues)

        ci_path = _join(sig_path, "ci")
        ci = _field(signals, "ci", "dict", sig_path, issues)
        if ci is not None:
            _no_unknown(ci, {"status", "coverage_delta", "checks"}, ci_path, issues)
            _one_of(_field(ci, "status", "str", ci_path, issues), CI_STATUSES,
                    _join(ci_path, "status"), issues)
            _field(ci, "coverage_delta", "number", ci_path, issues, required=False)
            checks = _field(ci, "checks", "list", ci_path, issues, required=False)
            for i, check in enumerate(checks or []):
                check_path = _join(_join(ci_path, "checks"), i)
                if not isinstance(check, dict):
                    issues.append(f"{check_path}: expected object")
                    continue
                _field(check, "name", "str", check_path, issues)
                _field(check, "url", "str", check_path, issues, required=False)
                _field(check, "conclusion", "str", check_path, issues, required=False)

        sec_path = _join(sig_path, "security")
        security = _field(signals, "security", "dict", sig_path, issues)
        if security is not None:
            _no_unknown(security, {"critical_count", "high_count"}, sec_path, issues)
            for key in ("critical_count", "high_count"):
                count = _field(security, key, "int", sec_path, issues)
                if count is not None and count < 0:
                    issues.append(f"{_join(sec_path, key)}: must be >= 0")

        can_path = _join(sig_path, "canary")
        canary = _field(signals, "canary", "dict", sig_path, issues, required=False)
        if canary is not None:
            _no_unknown(canary, {"passed", "error_rate", "latency_delta"}, can_path, issues)
            _field(canary, "passed", "bool", can_path, issues)
            _field(canary, "error_rate", "number", can_path, issues, required=False)
            _field(canary, "latency_delta", "number", can_path, issues, required=False)

    return issues


def validate_policy_snapshot(snapshot: Any, path: str = "policy_evaluation") -> List[str]:
    """Validate the plain policy-evaluation snapshot embedded in a verdict."""
    if not isinstance(snapshot, dict):
        return [f"{path}: expected object"]

    issues: List[str] = []
    _no_unknown(
        snapshot,
        {"matched_rules", "policy_action", "proposed_factory_action",
         "policy_version", "highest_severity"},
        path,
        issues,
    )
    rules = _field(snapshot, "matched_rules", "list", path, issues)
    for i, rule in enumerate(rules or []):
        prefix = _join(_join(path, "matched_rules"), i)
        if not isinstance(rule, dict):
            issues.append(f"{prefix}: expected object")
            continue
        _no_unknown(rule, {"rule_id", "severity", "then", "reason"}, prefix, issues)
        _field(rule, "rule_id", "str", prefix, issues)
        _one_of(_field(rule, "severity", "str", prefix, issues), RULE_SEVERITIES,
                _join(prefix, "severity"), issues)
        _one_of(_field(rule, "then", "str", prefix, issues), RULE_ACTIONS,
                _join(prefix, "then"), issues)
        _field(rule, "reason", "str", prefix, issues)

    _one_of(_field(snapshot, "policy_action", "str", path, issues), POLICY_ACTIONS,
            _join(path, "policy_action"), issues)
    _one_of(_field(snapshot, "proposed_factory_action", "str", path, issues),
            SNAPSHOT_FACTORY_ACTIONS, _join(path, "proposed_factory_action"), issues)
    _field(snapshot, "policy_version", "str", path, issues, required=False)
    _one_of(_field(snapshot, "highest_severity", "str", path, issues, required=False),
            SEVERITIES, _join(path, "highest_severity"), issues)
    return issues


def validate_scorecard(scorecard: Any, path: str = "scorecard") -> List[str]:
    if not isinstance(scorecard, dict):
        return [f"{path}: expected object"]

    issues: List[str] = []
    _no_unknown(scorecard, {"overall", "dimensions", "risk_level"}, path, issues)
    _between(_field(scorecard, "overall", "int", path, issues), 0, 100,
             _join(path, "overall"), issues)
    dim_path = _join(path, "dimensions")
    dims = _field(scorecard, "dimensions", "dict", path, issues)
    if dims is not None:
        _no_unknown(dims, SCORE_DIMENSIONS, dim_path, issues)
        for dim in SCORE_DIMENSIONS:
            _between(_field(dims, dim, "int", dim_path, issues), 0, 100,
                     _join(dim_path, dim), issues)
    _one_of(_field(scorecard, "risk_level", "str", path, issues), RISK_LEVELS,
            _join(path, "risk_level"), issues)
    return issues


def validate_verdict_document(doc: Any) -> List[str]:
    """Validate a complete verdict document; return issues list."""
    if not isinstance(doc, dict):
        return ["verdict document is not a dict"]

    issues: List[str] = []
    _no_unknown(doc, VERDICT_TOP_LEVEL, "", issues)

    schema = _field(doc, "schema_version", "str", "", issues)
    if schema is not None and schema != VERDICT_SCHEMA:
        issues.append(f"schema_version: expected {VERDICT_SCHEMA}, got {schema}")
    _nonempty(_field(doc, "policy_version", "str", "", issues), "policy_version", issues)

    for key, validator in (
        ("run", validate_run_metadata),
        ("inputs", validate_verdict_inputs),
        ("policy_evaluation", validate_policy_snapshot),
        ("scorecard", validate_scorecard),
    ):
        if key not in doc:
            issues.append(f"{key}: missing")
        else:
            issues.extend(validator(doc[key], key))

    verdict = _field(doc, "verdict", "dict", "", issues)
    if verdict is not None:
        _no_unknown(verdict, {"proposed_action", "confidence", "recommended_next_steps"},
                    "verdict", issues)
        _one_of(_field(verdict, "proposed_action", "str", "verdict", issues),
                FACTORY_ACTIONS, "verdict.proposed_action", issues)
        _between(_field(verdict, "confidence", "number", "verdict", issues), 0, 1,
                 "verdict.confidence", issues)
        steps = _field(verdict, "recommended_next_steps", "list", "verdict", issues)
        _string_list(steps, "verdict.recommended_next_steps", issues)

    rationale = _field(doc, "rationale", "dict", "", issues)
    if rationale is not None:
        _no_unknown(rationale, {"summary", "key_evidence_refs"}, "rationale", issues)
        _nonempty(_field(rationale, "summary", "str", "rationale", issues),
                  "rationale.summary", issues)
        refs = _field(rationale, "key_evidence_refs", "list", "rationale", issues)
        _string_list(refs, "rationale.key_evidence_refs", issues)

    return issues


# ---------------------------------------------------------------------------
# Plans and audit records
# ---------------------------------------------------------------------------

def _validate_transitions(transitions: Optional[list], path: str, issues: List[str]) -> None:
    for i, tr in enumerate(transitions or []):
        prefix = _join(path, i)
        if not isinstance(tr, dict):
            issues.append(f"{prefix}: expected object")
            continue
        _no_unknown(tr, {"from", "to", "timestamp", "reason"}, prefix, issues)
        _one_of(_field(tr, "from", "str", prefix, issues), PLAN_STATUSES,
                _join(prefix, "from"), issues)
        _one_of(_field(tr, "to", "str", prefix, issues), PLAN_STATUSES,
                _join(prefix, "to"), issues)
        _nonempty(_field(tr, "timestamp", "str", prefix, issues),
                  _join(prefix, "timestamp"), issues)
        _nonempty(_field(tr, "reason", "str", prefix, issues), _join(prefix, "reason"), issues)


def _validate_plan_fields(doc: Dict[str, Any], issues: List[str]) -> None:
    for key in ("action_request_id", "run_id"):
        _nonempty(_field(doc, key, "str", "", issues), key, issues)
    for key in ("proposed_action", "final_action"):
        _one_of(_field(doc, key, "str", "", issues), FACTORY_ACTIONS, key, issues)
    _between(_field(doc, "confidence", "number", "", issues), 0, 1, "confidence", issues)
    _field(doc, "learning_mode", "bool", "", issues)
    _field(doc, "approved_for_execution", "bool", "", issues)
    status = _field(doc, "status", "str", "", issues)
    _one_of(status, PLAN_STATUSES, "status", issues)

    transitions = _field(doc, "status_transitions", "list", "", issues)
    _validate_transitions(transitions, "status_transitions", issues)
    if transitions and isinstance(transitions[-1], dict) and status is not None:
        last_to = transitions[-1].get("to")
        if last_to != status:
            issues.append(
                f"status: {status} does not match last transition target {last_to}"
            )


def validate_action_plan(doc: Any) -> List[str]:
    """Validate an action plan dict (as produced by ActionPlan.to_dict)."""
    if not isinstance(doc, dict):
        return ["plan is not a dict"]

    issues: List[str] = []
    _no_unknown(doc, PLAN_KEYS, "", issues)
    schema = _field(doc, "schema_version", "str", "", issues)
    if schema is not None and schema != PLAN_SCHEMA:
        issues.append(f"schema_version: expected {PLAN_SCHEMA}, got {schema}")
    _validate_plan_fields(doc, issues)
    return issues


def validate_adapter_result(result: Any, path: str = "") -> List[str]:
    """Validate one serialised adapter result."""
    if not isinstance(result, dict):
        return [f"{path or 'adapter result'}: expected object"]

    issues: List[str] = []
    _no_unknown(result, ADAPTER_RESULT_KEYS, path, issues)
    _nonempty(_field(result, "adapter", "str", path, issues), _join(path, "adapter"), issues)
    _one_of(_field(result, "status", "str", path, issues), ADAPTER_STATUSES,
            _join(path, "status"), issues)
    _field(result, "message", "str", path, issues, required=False)
    _nonempty(_field(result, "timestamp", "str", path, issues), _join(path, "timestamp"), issues)
    return issues


def validate_audit_record(record: Any) -> List[str]:
    """Validate an audit record before it is appended to the log."""
    if not isinstance(record, dict):
        return ["audit record is not a dict"]

    issues: List[str] = []
    _no_unknown(record, AUDIT_KEYS, "", issues)
    schema = _field(record, "schema_version", "str", "", issues)
    if schema is not None and schema != AUDIT_SCHEMA:
        issues.append(f"schema_version: expected {AUDIT_SCHEMA}, got {schema}")
    _nonempty(_field(record, "timestamp", "str", "", issues), "timestamp", issues)

    verdict_hash = _field(record, "verdict_hash", "str", "", issues)
    if verdict_hash is not None and (
        len(verdict_hash) != 64 or any(c not in "0123456789abcdef" for c in verdict_hash)
    ):
        issues.append("verdict_hash: expected 64 lowercase hex characters")

    _validate_plan_fields(record, issues)
    status = record.get("status")
    if status in PLAN_STATUSES and status not in TERMINAL_PLAN_STATUSES:
        issues.append(f"status: audit records are written in a terminal state, got {status}")
    _field(record, "dry_run", "bool", "", issues)

    results = _field(record, "adapter_results", "list", "", issues)
    for i, result in enumerate(results or []):
        issues.extend(validate_adapter_result(result, _join("adapter_results", i)))

    _field(record, "prev_hash", "str", "", issues, required=False)
    _field(record, "entry_hash", "str", "", issues, required=False)
    return issues
