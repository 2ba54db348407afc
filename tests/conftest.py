"""Shared fixtures: a green signal vector, run metadata, verdict inputs,
a small release policy and a deterministic clock."""
from __future__ import annotations

import copy

import pytest


BASE_POLICY = {
    "version": "2026.10-test",
    "defaults": {"learning_mode": False},
    "rules": [
        {
            "id": "ci-failed",
            "when": 'ci.status == "failure"',
            "then": "KILL_AND_ROLLBACK",
            "severity": "BLOCK",
            "reason": "CI failed",
        },
        {
            "id": "critical-vulns",
            "when": "security.critical_count > 0",
            "then": "KILL_AND_ROLLBACK",
            "severity": "BLOCK",
            "reason": "Critical vulnerabilities present",
        },
        {
            "id": "infra-or-db",
            "when": "change.infra == true || change.db_migration == true",
            "then": "REQUIRE_APPROVAL",
            "severity": "HIGH",
            "reason": "Infrastructure or schema change",
        },
        {
            "id": "canary-degraded",
            "when": "canary.error_rate > 0.02 || canary.latency_delta > 100",
            "then": "KILL_AND_ROLLBACK",
            "severity": "BLOCK",
            "reason": "Canary degraded",
        },
        {
            "id": "all-green",
            "when": 'ci.status == "success" && security.high_count == 0',
            "then": "ALLOW",
            "severity": "INFO",
            "reason": "All checks green",
        },
    ],
}


@pytest.fixture
def clean_signals():
    """Flat signal vector for a healthy change."""
    return {
        "ci_status": "success",
        "security_critical_count": 0,
        "security_high_count": 0,
        "infra_change": False,
        "db_migration": False,
        "auth_change": False,
        "secrets_change": False,
        "dependency_change": False,
        "canary_error_rate": 0.001,
        "canary_latency_delta": 12.0,
    }


@pytest.fixture
def run_metadata():
    return {
        "run_id": "run-0042",
        "repo": "acme/payments",
        "pr_number": 318,
        "head_sha": "9f2c1e7",
        "timestamp_utc": "2026-10-18T09:30:00Z",
    }


@pytest.fixture
def verdict_inputs():
    """Verdict inputs matching ``clean_signals``."""
    return {
        "learning_mode": False,
        "change_summary": {
            "files_changed": 6,
            "change_flags": {
                "infra_change": False,
                "db_migration": False,
                "auth_change": False,
                "secrets_change": False,
                "dependency_change": False,
                "permission_change": False,
            },
            "touched_paths": ["src/payments/api.py", "tests/test_api.py"],
        },
        "signals": {
            "ci": {
                "status": "success",
                "checks": [
                    {"name": "lint"},
                    {"name": "unit", "url": "https://ci.example.com/runs/42"},
                ],
            },
            "security": {"critical_count": 0, "high_count": 0},
            "canary": {"passed": True, "error_rate": 0.001, "latency_delta": 12.0},
        },
    }


@pytest.fixture
def policy_dict():
    return copy.deepcopy(BASE_POLICY)


@pytest.fixture
def fixed_clock():
    """Clock returning strictly increasing ISO timestamps."""
    ticks = {"n": 0}

    def now() -> str:
        ticks["n"] += 1
        return f"2026-10-18T10:00:{ticks['n']:02d}+00:00"

    return now
