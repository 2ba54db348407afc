"""Tests for aegis.config and aegis.logger."""
from __future__ import annotations

import logging
import logging.handlers

import pytest

from aegis.config import Config, LoggingConfig, OrchestratorConfig
from aegis.logger import get_logger, setup_logger


class TestConfig:

    def test_defaults_in_range(self):
        assert 0.0 <= Config.orchestrator.AUTO_EXECUTE_MIN_CONFIDENCE <= 1.0

    def test_summary_sections(self):
        summary = Config.summary()
        assert set(summary) == {"orchestrator", "policy", "logging"}
        assert "auto_execute_min_confidence" in summary["orchestrator"]
        assert isinstance(summary["policy"]["learning_mode"], bool)

    def test_threshold_out_of_range(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(AUTO_EXECUTE_MIN_CONFIDENCE=1.2)

    def test_bad_log_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(LEVEL="LOUD")

    def test_validate_passes_on_defaults(self):
        Config.validate()

    def test_validate_rechecks_reassigned_threshold(self, monkeypatch):
        monkeypatch.setattr(Config.orchestrator, "AUTO_EXECUTE_MIN_CONFIDENCE", 1.5)
        with pytest.raises(ValueError, match="AEGIS_AUTO_EXECUTE_MIN_CONFIDENCE"):
            Config.validate()

    def test_validate_rechecks_reassigned_level(self, monkeypatch):
        monkeypatch.setattr(Config.logging, "LEVEL", "LOUD")
        with pytest.raises(ValueError, match="AEGIS_LOG_LEVEL"):
            Config.validate()


class TestLogger:

    def test_console_only_without_log_dir(self):
        logger = setup_logger("aegis.test.console_only")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_rotating_file_with_log_dir(self, tmp_path):
        logger = setup_logger("aegis.test.with_file", log_file="gate.log", log_dir=str(tmp_path))
        file_handlers = [h for h in logger.handlers
                         if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        logger.info("plan created")
        file_handlers[0].flush()
        assert "plan created" in (tmp_path / "gate.log").read_text(encoding="utf-8")
        for h in file_handlers:
            h.close()
            logger.removeHandler(h)

    def test_setup_is_idempotent(self):
        first = setup_logger("aegis.test.repeat")
        second = setup_logger("aegis.test.repeat")
        assert first is second
        assert len(second.handlers) == 1

    def test_get_logger_configures_once(self):
        logger = get_logger("aegis.test.lazy")
        assert logger.handlers
        assert get_logger("aegis.test.lazy") is logger
