"""日志配置与进度汇报测试"""

from __future__ import annotations

import io
import json
import logging
import sys
import threading

import pytest
from rich.console import Console

from depflow.core.progress import LogProgressReporter, NullProgressReporter, RichProgressReporter
from depflow.utils.logger import JSONFormatter, log_resolved, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    def test_extra_fields_passed_through(self) -> None:
        record = logging.LogRecord(
            "depflow.resolved", logging.DEBUG, __file__, 1, "resolved %s", ("a",), None,
        )
        record.event = "resolved"
        record.package = "a"
        record.digest = "aaa111"
        record.unrelated = "dropped"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "resolved a"
        assert entry["level"] == "DEBUG"
        assert entry["logger"] == "depflow.resolved"
        assert entry["event"] == "resolved"
        assert entry["digest"] == "aaa111"
        assert "unrelated" not in entry

    def test_exception_included(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), exc_info)
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestSetupLogging:
    def test_replaces_handlers(self, restore_root_logger) -> None:
        setup_logging("DEBUG")
        setup_logging("WARNING", json_output=True)
        root = restore_root_logger
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.WARNING

    def test_unknown_level_falls_back(self, restore_root_logger) -> None:
        setup_logging("chatty")
        assert restore_root_logger.level == logging.INFO


class TestLogResolved:
    def test_root_parent(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="depflow.resolved"):
            log_resolved(None, "aaa1112233", "a", "1.0.0")
        record = caplog.records[-1]
        assert record.getMessage() == "resolved a@1.0.0 [aaa1112] <- <root>"
        assert record.parent_digest is None
        assert record.package == "a"

    def test_nested_parent(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="depflow.resolved"):
            log_resolved("bbb2223344", "aaa1112233", "a", "1.0.0")
        assert caplog.records[-1].getMessage().endswith("<- bbb2223")


class TestProgressReporters:
    def test_null(self) -> None:
        reporter = NullProgressReporter()
        reporter.start("x")
        reporter.complete("x")

    def test_log_reporter_thread_safe(self) -> None:
        reporter = LogProgressReporter()

        def work() -> None:
            for i in range(100):
                reporter.start(f"resolving p{i}")
                reporter.complete(f"resolved p{i}")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert reporter.started == reporter.completed == 400

    def test_rich_reporter_total_grows(self) -> None:
        console = Console(file=io.StringIO(), force_terminal=False)
        with RichProgressReporter(console=console) as reporter:
            reporter.start("resolving a@1")
            reporter.start("resolving b@1")
            reporter.complete("resolved a@1.0.0 [aaa1112]")
        assert (reporter.started, reporter.completed) == (2, 1)
