"""Tests for logging setup and redaction."""

from __future__ import annotations

import logging

import pytest

from port_sdk.exceptions import ConfigError
from port_sdk.log import (
    REDACTED,
    TRACE,
    RedactingFilter,
    configure_logging,
    parse_log_level,
    sanitize,
)


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("port_sdk")
    level = logger.level
    handlers = list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


class TestParseLogLevel:
    @pytest.mark.parametrize(
        ("name", "level"),
        [
            ("error", logging.ERROR),
            ("WARN", logging.WARNING),
            ("warning", logging.WARNING),
            ("Info", logging.INFO),
            ("DEBUG", logging.DEBUG),
            ("trace", TRACE),
        ],
    )
    def test_known(self, name: str, level: int) -> None:
        assert parse_log_level(name) == level

    def test_unknown(self) -> None:
        with pytest.raises(ConfigError):
            parse_log_level("LOUD")


class TestSanitize:
    def test_nested_secrets_redacted(self) -> None:
        data = {
            "clientId": "id",
            "client_secret": "s",
            "headers": {"Authorization": "Bearer x", "Accept": "application/json"},
            "items": [{"accessToken": "t", "name": "ok"}],
        }
        assert sanitize(data) == {
            "clientId": REDACTED,
            "client_secret": REDACTED,
            "headers": {"Authorization": REDACTED, "Accept": "application/json"},
            "items": [{"accessToken": REDACTED, "name": "ok"}],
        }

    def test_scalars_untouched(self) -> None:
        assert sanitize("plain") == "plain"


class TestRedactingFilter:
    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("port_sdk", logging.INFO, __file__, 1, "msg", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_sensitive_extra_redacted(self) -> None:
        record = self._record(access_token="abc", status_code=200)
        assert RedactingFilter().filter(record) is True
        assert record.access_token == REDACTED
        assert record.status_code == 200

    def test_nested_extra_sanitized(self) -> None:
        record = self._record(body={"password": "pw", "user": "me"})
        RedactingFilter().filter(record)
        assert record.body == {"password": REDACTED, "user": "me"}

    def test_standard_attributes_untouched(self) -> None:
        record = self._record()
        RedactingFilter().filter(record)
        assert record.getMessage() == "msg"


class TestConfigureLogging:
    def test_default_level_is_warning(self) -> None:
        logger = configure_logging(environ={})
        assert logger.level == logging.WARNING

    def test_verbose_means_debug(self) -> None:
        assert configure_logging(verbose=True, environ={}).level == logging.DEBUG

    def test_level_from_env(self) -> None:
        assert configure_logging(environ={"PORT_LOG_LEVEL": "info"}).level == logging.INFO

    def test_verbose_env(self) -> None:
        assert configure_logging(environ={"PORT_VERBOSE": "1"}).level == logging.DEBUG

    def test_reconfigure_replaces_handler(self) -> None:
        logger = logging.getLogger("port_sdk")
        before = len(logger.handlers)
        configure_logging("INFO", environ={})
        configure_logging("DEBUG", environ={})
        assert len(logger.handlers) == before + 1

    def test_handler_redacts_secrets(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("DEBUG", environ={})
        logging.getLogger("port_sdk.test").debug("exchange", extra={"client_secret": "hunter2"})
        captured = capsys.readouterr()
        assert "hunter2" not in captured.err
        assert "exchange" in captured.err
