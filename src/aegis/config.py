"""Configuration management.

Centralises environment variables and defaults. Entry points always accept
explicit arguments; these values are only consulted when a caller omits one.
"""
import os
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """Action orchestrator defaults"""

    AUTO_EXECUTE_MIN_CONFIDENCE: float = float(
        os.getenv("AEGIS_AUTO_EXECUTE_MIN_CONFIDENCE", "0.85")
    )
    AUDIT_PATH: str = os.getenv("AEGIS_AUDIT_PATH", "aegis_audit.jsonl")
    # empty -> per-call in-memory store
    IDEMPOTENCY_DIR: str = os.getenv("AEGIS_IDEMPOTENCY_DIR", "").strip()

    def __post_init__(self):
        self.check()
        if not self.IDEMPOTENCY_DIR:
            logger.info("AEGIS_IDEMPOTENCY_DIR not set - idempotency is per-process only")

    def check(self):
        if not 0.0 <= self.AUTO_EXECUTE_MIN_CONFIDENCE <= 1.0:
            raise ValueError("AEGIS_AUTO_EXECUTE_MIN_CONFIDENCE must be within [0, 1]")


@dataclass
class PolicyConfig:
    """Policy source defaults"""

    POLICY_PATH: str = os.getenv("AEGIS_POLICY_PATH", "").strip()
    LEARNING_MODE: bool = os.getenv("AEGIS_LEARNING_MODE", "1") == "1"

    def __post_init__(self):
        if self.LEARNING_MODE:
            logger.info("Learning mode is on by default (AEGIS_LEARNING_MODE=1)")


@dataclass
class LoggingConfig:
    """Logging destinations"""

    LEVEL: str = os.getenv("AEGIS_LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("AEGIS_LOG_DIR", "").strip()
    LOG_FILE: str = os.getenv("AEGIS_LOG_FILE", "aegis.log")

    def __post_init__(self):
        self.check()

    def check(self):
        if self.LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid AEGIS_LOG_LEVEL: {self.LEVEL}")


class Config:
    """Global configuration"""

    orchestrator: OrchestratorConfig = OrchestratorConfig()
    policy: PolicyConfig = PolicyConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def validate(cls) -> None:
        """Re-check every configuration group (called at import).

        Group values may be reassigned after import; this re-runs their checks.

        Raises:
            ValueError: a group holds an out-of-range value
        """
        cls.orchestrator.check()
        cls.logging.check()
        logger.debug("Configuration validated successfully")

    @classmethod
    def summary(cls) -> dict:
        """Configuration summary for logs and audit context"""
        return {
            "orchestrator": {
                "auto_execute_min_confidence": cls.orchestrator.AUTO_EXECUTE_MIN_CONFIDENCE,
                "audit_path": cls.orchestrator.AUDIT_PATH,
                "persistent_idempotency": bool(cls.orchestrator.IDEMPOTENCY_DIR),
            },
            "policy": {
                "policy_path": cls.policy.POLICY_PATH,
                "learning_mode": cls.policy.LEARNING_MODE,
            },
            "logging": {
                "level": cls.logging.LEVEL,
                "log_dir": cls.logging.LOG_DIR,
            },
        }


Config.validate()
