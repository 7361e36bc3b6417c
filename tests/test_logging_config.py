# tests/test_logging_config.py

import json
import logging

import pytest

from utils.logging_config import JSONFormatter, PerformanceLogger, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for handler in handlers:
        root.removeHandler(handler)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_writes_files(tmp_path, restore_root_logger):
    setup_logging("DEBUG", str(tmp_path), name="test_run")
    logging.getLogger("retrieval.test").info("cache loaded")

    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "cache loaded" in (tmp_path / "test_run.log").read_text()
    record = json.loads((tmp_path / "test_run_structured.json").read_text().splitlines()[-1])
    assert record['message'] == "cache loaded"
    assert record['level'] == "INFO"


def test_setup_logging_console_only(restore_root_logger):
    root = setup_logging("WARNING", None)

    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad vector")
    except ValueError:
        import sys
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    data = json.loads(JSONFormatter().format(record))

    assert data['message'] == "failed"
    assert "bad vector" in data['exception']


def test_performance_statistics():
    perf = PerformanceLogger()
    perf.log_metric('batch', 1.0)
    perf.log_metric('batch', 3.0)
    perf.log_metric('query_embedding', 0.5)

    stats = perf.get_statistics('batch')

    assert stats['count'] == 2
    assert stats['mean'] == pytest.approx(2.0)
    assert stats['total'] == pytest.approx(4.0)
    assert perf.get_statistics('missing') == {}
    assert perf.get_statistics()['count'] == 3
