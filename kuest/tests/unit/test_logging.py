"""Tests for credential redaction and logging setup."""

import logging
from io import StringIO

import pytest

from kuest.logging_config import get_logger, setup_logging
from kuest.tests.helpers import ADDRESS, PASSPHRASE, PRIVATE_KEY, SECRET, TOKEN_ID
from kuest.utils.structured_logging import (
    CorrelationIdFilter,
    CredentialRedactionFilter,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture
def captured():
    """Logger whose output passes through the redaction filter."""
    logger = logging.getLogger("kuest.tests.redaction")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(CredentialRedactionFilter())
    logger.addHandler(handler)

    yield logger, stream

    logger.removeHandler(handler)


class TestCredentialRedaction:
    def test_private_key(self, captured):
        logger, stream = captured

        logger.info(f"Loaded wallet key {PRIVATE_KEY}")

        output = stream.getvalue()
        assert PRIVATE_KEY not in output
        assert "0x[REDACTED]" in output

    def test_secret_assignment(self, captured):
        logger, stream = captured

        logger.info(f"credentials secret={SECRET}")

        output = stream.getvalue()
        assert SECRET not in output
        assert "secret=[REDACTED]" in output

    def test_passphrase_header(self, captured):
        logger, stream = captured

        headers = {"KUEST_PASSPHRASE": PASSPHRASE}
        logger.debug(f"Request headers {headers}")

        assert PASSPHRASE not in stream.getvalue()

    def test_token_ids_and_addresses_are_kept(self, captured):
        logger, stream = captured

        logger.info(f"Built order: maker={ADDRESS} token={TOKEN_ID}")

        output = stream.getvalue()
        assert ADDRESS in output
        assert TOKEN_ID in output

    def test_long_base64_is_redacted(self, captured):
        logger, stream = captured
        blob = "dGhpcyBpcyBhIHZlcnkgbG9uZyBzZWNyZXQgdmFsdWUgaW5kZWVk"

        logger.info(f"payload {blob}")

        output = stream.getvalue()
        assert blob not in output
        assert "dGhpcyBp...[REDACTED]" in output

    def test_exception_text(self):
        record = logging.LogRecord("kuest", logging.ERROR, __file__, 1, "failed", None, None)
        record.exc_text = f"ValueError: bad key {PRIVATE_KEY}"

        CredentialRedactionFilter().filter(record)

        assert PRIVATE_KEY not in record.exc_text


class TestCorrelationIds:
    def test_generated_id(self):
        correlation_id = set_correlation_id()
        try:
            assert correlation_id.startswith("req_")
            assert get_correlation_id() == correlation_id
        finally:
            clear_correlation_id()
        assert get_correlation_id() is None

    def test_filter_attaches_id(self):
        record = logging.LogRecord("kuest", logging.INFO, __file__, 1, "msg", None, None)

        set_correlation_id("req_test")
        try:
            CorrelationIdFilter().filter(record)
        finally:
            clear_correlation_id()

        assert record.correlation_id == "req_test"


@pytest.fixture
def restore_logging():
    """Undo dictConfig changes so other tests keep default propagation."""
    logger = logging.getLogger("kuest")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    root_handlers = list(logging.getLogger().handlers)

    yield

    for handler in logger.handlers:
        if handler not in saved[1]:
            handler.close()
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]
    logging.getLogger().handlers[:] = root_handlers


@pytest.mark.usefixtures("restore_logging")
class TestSetupLogging:
    def test_level(self):
        config = setup_logging(level="debug")

        assert config["loggers"]["kuest"]["level"] == "DEBUG"
        assert logging.getLogger("kuest").level == logging.DEBUG

    def test_json_format(self):
        config = setup_logging(json_format=True)

        assert config["handlers"]["console"]["formatter"] == "json"

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "kuest.log"

        config = setup_logging(log_file=str(log_file))
        get_logger("tests").info(f"key {PRIVATE_KEY}")
        for handler in logging.getLogger("kuest").handlers:
            handler.flush()

        assert "file" in config["loggers"]["kuest"]["handlers"]
        content = log_file.read_text()
        assert "0x[REDACTED]" in content
        assert PRIVATE_KEY not in content

    def test_get_logger_namespace(self):
        assert get_logger("api").name == "kuest.api"
