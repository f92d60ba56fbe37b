"""
Unit tests for structured logging setup.
"""

import io
import json
import logging

import pytest

from safe_core.core.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def logger_name(request):
    name = f"safe_core_logging_test.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_json_lines_carry_structured_fields(logger_name):
    stream = io.StringIO()
    logger = setup_logging(name=logger_name, level="DEBUG", environment="test", stream=stream)

    logger.info("Hash approved", extra={"event": "safe.hash_approved", "account": "0x5aAeb605"})

    record = json.loads(stream.getvalue().strip())
    assert record["message"] == "Hash approved"
    assert record["event"] == "safe.hash_approved"
    assert record["account"] == "0x5aAeb605"
    assert record["level"] == "info"
    assert record["environment"] == "test"
    assert record["service"] == "safe_core_logging_test"
    assert record["source"]["function"] == "test_json_lines_carry_structured_fields"
    assert record["timestamp"]


def test_plain_text_format(logger_name):
    stream = io.StringIO()
    logger = setup_logging(name=logger_name, level="INFO", json_format=False, stream=stream)

    logger.debug("hidden")
    logger.warning("Signers out of order")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "WARNING" in output
    assert "Signers out of order" in output


def test_setup_replaces_handlers(logger_name):
    setup_logging(name=logger_name, stream=io.StringIO())
    logger = setup_logging(name=logger_name, stream=io.StringIO())
    assert len(logger.handlers) == 1


def test_log_file_is_json(logger_name, tmp_path):
    log_file = tmp_path / "logs" / "core.json"
    logger = setup_logging(name=logger_name, log_file=str(log_file), json_format=False, enable_console=False)

    logger.info("Simulation completed", extra={"event": "simulation.completed"})
    for handler in logger.handlers:
        handler.flush()

    record = json.loads(log_file.read_text().strip())
    assert record["event"] == "simulation.completed"


def test_unknown_level(logger_name):
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_logging(name=logger_name, level="LOUD")


def test_get_logger_keeps_existing_configuration(logger_name):
    stream = io.StringIO()
    configured = setup_logging(name=logger_name, level="ERROR", stream=stream)
    assert get_logger(logger_name) is configured
    assert configured.level == logging.ERROR


def test_formatter_defaults():
    formatter = CustomJsonFormatter()
    assert formatter.environment == "production"
    assert formatter.service_name == "safe_core"
