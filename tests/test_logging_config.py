"""Test unified logging configuration.

Tests for src.utils.logging_config:
    - JSON file output includes contextual fields
    - Human format includes context and level
    - push_context / pop_context
    - Repeated setup_logging() does not duplicate handlers
    - Invalid level / rotation mode rejected

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging

import pytest

from src.utils import logging_config


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    level = root.level
    yield
    logging_config.setup_logging(to_stderr=False, capture_warnings=False)
    logging_config.pop_context()
    logging.captureWarnings(False)
    root.setLevel(level)


def test_json_file_with_context(tmp_path):
    log_file = tmp_path / "logs" / "sim.log"
    handlers = logging_config.setup_logging(
        "INFO", str(log_file), json=True, to_stderr=False, context={"app": "simulate"}
    )

    logging_config.get_logger("volume_test").info("Injected 3 sources")
    for handler in handlers:
        handler.flush()

    lines = log_file.read_text().strip().splitlines()
    record = json.loads(lines[-1])
    assert record['msg'] == "Injected 3 sources"
    assert record['lvl'] == "INFO"
    assert record['app'] == "simulate"


def test_human_format_with_context():
    logging_config.push_context(run="beads-01")
    formatter = logging_config.ContextFormatter("human", use_color=False)
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "edge source", None, None)

    line = formatter.format(record)

    assert "WARNING" in line
    assert "run=beads-01" in line
    assert line.endswith("edge source")


def test_push_pop_context():
    logging_config.push_context(app="simulate", run="r1")
    logging_config.pop_context(keys=["run"])
    formatter = logging_config.ContextFormatter("json")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

    data = json.loads(formatter.format(record))
    assert data['app'] == "simulate"
    assert 'run' not in data


def test_setup_is_idempotent(tmp_path):
    root = logging.getLogger()
    before = len(root.handlers)

    logging_config.setup_logging("DEBUG", str(tmp_path / "a.log"), to_stderr=False)
    logging_config.setup_logging("DEBUG", str(tmp_path / "a.log"), to_stderr=False)

    assert len(root.handlers) == before + 1
    assert root.level == logging.DEBUG


def test_invalid_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        logging_config.setup_logging("LOUD", to_stderr=False)


def test_invalid_rotation(tmp_path):
    with pytest.raises(ValueError, match="Unknown rotation mode"):
        logging_config.setup_logging(
            "INFO", str(tmp_path / "r.log"), to_stderr=False, rotate={"mode": "weekly"}
        )
