"""
Toprank: Tests for Logging Setup

Test suite for ``toprank.core.logging``. Covers:
- File handler creation
- Namespaced logger retrieval
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from toprank.core.config import ToprankConfig
from toprank.core.logging import RunContextFilter, current_run_label, get_logger, run_context, setup_logging


class TestLogging:
    def test_setup_logging_creates_log_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        log_file = tmp_path / "test.log"

        root_logger = logging.getLogger()
        saved = list(root_logger.handlers)
        for handler in saved:
            root_logger.removeHandler(handler)

        try:
            monkeypatch.setenv("LOG_FILE", str(log_file))
            setup_logging(ToprankConfig())
            get_logger("test.logging").info("Test log message")

            for handler in root_logger.handlers:
                handler.flush()
            assert log_file.exists()
            assert "Test log message" in log_file.read_text()
        finally:
            for handler in list(root_logger.handlers):
                root_logger.removeHandler(handler)
                handler.close()
            for handler in saved:
                root_logger.addHandler(handler)

    def test_setup_logging_is_idempotent(self) -> None:
        setup_logging()
        n_handlers = len(logging.getLogger().handlers)
        setup_logging()
        assert len(logging.getLogger().handlers) == n_handlers

    def test_get_logger_returns_namespaced_logger(self) -> None:
        assert get_logger("core.test").name == "toprank.core.test"
        assert get_logger("toprank.pipeline.orchestrator").name == "toprank.pipeline.orchestrator"

    def test_run_context_tags_records(self) -> None:
        run_filter = RunContextFilter()

        outside = logging.LogRecord("toprank.x", logging.INFO, __file__, 1, "m", None, None)
        run_filter.filter(outside)
        assert outside.run == "-"

        with run_context("slug@2025-06-02"):
            assert current_run_label() == "slug@2025-06-02"
            inside = logging.LogRecord("toprank.x", logging.INFO, __file__, 1, "m", None, None)
            run_filter.filter(inside)
            assert inside.run == "slug@2025-06-02"

        assert current_run_label() == "-"

    def test_empty_log_file_disables_file_handler(self, monkeypatch: pytest.MonkeyPatch) -> None:
        root_logger = logging.getLogger()
        saved = list(root_logger.handlers)
        for handler in saved:
            root_logger.removeHandler(handler)

        try:
            monkeypatch.setenv("LOG_FILE", "")
            setup_logging(ToprankConfig())
            assert not any(isinstance(h, logging.FileHandler) for h in root_logger.handlers)
            assert all(any(isinstance(f, RunContextFilter) for f in h.filters) for h in root_logger.handlers)
        finally:
            for handler in list(root_logger.handlers):
                root_logger.removeHandler(handler)
                handler.close()
            for handler in saved:
                root_logger.addHandler(handler)
