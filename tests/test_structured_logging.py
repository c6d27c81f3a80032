import io
import json

import pytest

from specsync.logging import StructuredLogger, configure_logging, get_logger


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_json_logging_includes_extra_fields():
    stream = io.StringIO()
    logger = StructuredLogger(name="specsync.test.json", json_logging=True, level="INFO", stream=stream)

    logger.log_issue_action("created", "Setup", 12, kind="sub_issue")

    entry = _lines(stream)[0]
    assert entry["level"] == "INFO"
    assert entry["operation"] == "issue_created"
    assert entry["issue_number"] == 12
    assert entry["title"] == "Setup"
    assert entry["kind"] == "sub_issue"


def test_timed_operation_logs_duration():
    stream = io.StringIO()
    logger = StructuredLogger(name="specsync.test.timed", json_logging=True, level="INFO", stream=stream)

    with logger.timed_operation("sync", spec="001"):
        pass

    entries = _lines(stream)
    assert entries[0]["operation"] == "sync_start"
    assert entries[-1]["operation"] == "sync"
    assert "duration_ms" in entries[-1]


def test_timed_operation_logs_failure_and_reraises():
    stream = io.StringIO()
    logger = StructuredLogger(name="specsync.test.fail", json_logging=True, level="INFO", stream=stream)

    with pytest.raises(RuntimeError):
        with logger.timed_operation("sync"):
            raise RuntimeError("boom")

    assert _lines(stream)[-1]["error"] == "boom"


def test_level_filters_info():
    stream = io.StringIO()
    logger = StructuredLogger(name="specsync.test.level", json_logging=False, level="WARNING", stream=stream)
    logger.info("hidden")
    logger.warning("shown")
    assert "hidden" not in stream.getvalue()
    assert "shown" in stream.getvalue()


def test_configure_logging_replaces_global():
    configured = configure_logging(json_logging=True, level="DEBUG")
    assert get_logger() is configured
    configure_logging()
