"""Policy file loading (YAML or JSON).

Usage:
    policy = load_policy(Path("policies/default.yaml"))
    result = evaluate_policy(policy, signals)
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import yaml

from ..common.file_io import read_json
from ..config import Config
from ..contracts_enforcer import ContractEnforcer
from ..logger import get_logger
from .engine import coerce_policy
from .types import PolicyDocument

logger = get_logger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


def load_policy(
    path: Optional[Union[str, Path]] = None,
    enforcer: Optional[ContractEnforcer] = None,
) -> PolicyDocument:
    """Read, validate and build a policy document.

    Args:
        path: ``.yaml``/``.yml``/``.json`` file; defaults to AEGIS_POLICY_PATH
        enforcer: Contract enforcer (a fresh one if None)

    Returns:
        Validated PolicyDocument

    Raises:
        ValueError: no path given and AEGIS_POLICY_PATH unset, or unknown suffix
        FileNotFoundError: policy file missing
        yaml.YAMLError / json.JSONDecodeError: malformed file
        ContractViolationError: structural contract violated
        PolicyDefinitionError: a rule references an unknown identifier
    """
    if path is None:
        if not Config.policy.POLICY_PATH:
            raise ValueError("No policy path given and AEGIS_POLICY_PATH is not set")
        path = Config.policy.POLICY_PATH
    path = Path(path)

    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    elif suffix == ".json":
        raw = read_json(path)
    else:
        raise ValueError(f"Unsupported policy file type: {path.suffix or '(none)'}")

    policy = coerce_policy(raw if raw is not None else {}, enforcer)
    logger.info("Loaded policy %s from %s (%d rules)", policy.version, path, len(policy.rules))
    return policy
