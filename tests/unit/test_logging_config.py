"""Unit tests for logging configuration helpers."""

import json
import logging
import sys

import pytest

from lessonforge.utils.logging_config import JsonFormatter, configure_logging, stage_logger


class TestJsonFormatter:
    """Test structured log formatting."""

    def make_record(self, **extra):
        record = logging.LogRecord(
            name="lessonforge.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Generated %s section",
            args=("warmup",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        data = json.loads(JsonFormatter().format(self.make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "lessonforge.test"
        assert data["message"] == "Generated warmup section"
        assert "timestamp" in data
        assert "extra" not in data

    def test_extra_fields(self):
        data = json.loads(JsonFormatter().format(self.make_record(stage="section.warmup", duration_ms=1.5)))

        assert data["extra"] == {"stage": "section.warmup", "duration_ms": 1.5}

    def test_exception_is_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self.make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestConfigureLogging:
    """Test handler setup."""

    def test_file_output_is_json(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "lesson.log"

        configure_logging(level="INFO", log_file=log_file, console_output=False)
        logging.getLogger("lessonforge.test").info("hello")
        for handler in restore_root_logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert json.loads(lines[-1])["message"] == "hello"

    def test_text_format(self, restore_root_logger):
        configure_logging(level=logging.DEBUG, json_format=False)

        handler = restore_root_logger.handlers[0]
        assert not isinstance(handler.formatter, JsonFormatter)
        assert restore_root_logger.level == logging.DEBUG


class TestStageLogger:
    """Test stage entry/exit logging."""

    def test_successful_stage(self, caplog):
        with caplog.at_level(logging.INFO):
            with stage_logger("section.warmup", level="B1") as log:
                log.info("working")

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["Starting stage: section.warmup", "working", "Completed stage: section.warmup"]
        assert caplog.records[-1].status == "completed"
        assert caplog.records[-1].level == "B1"

    def test_failed_stage_reraises(self, caplog):
        with caplog.at_level(logging.INFO):
            with pytest.raises(ValueError):
                with stage_logger("section.grammar"):
                    raise ValueError("bad json")

        failed = caplog.records[-1]
        assert failed.getMessage() == "Failed stage: section.grammar"
        assert failed.status == "failed"
        assert failed.error == "bad json"
