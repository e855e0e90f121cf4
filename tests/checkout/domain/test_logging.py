import logging

import pytest
import structlog
from checkout.config import Settings
from checkout.utils.logging import configure_logging, get_log_level


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestLogLevel:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level(Settings(environment="production")) == "INFO"
        assert get_log_level(Settings(environment="test")) == "WARNING"
        assert get_log_level(Settings(environment="somewhere")) == "INFO"

    def test_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level(Settings(environment="development")) == "ERROR"


class TestConfigureLogging:
    def test_structlog_goes_through_stdlib(self, root_logger, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        configure_logging(Settings(environment="test"))

        assert root_logger.level == logging.WARNING
        assert len(root_logger.handlers) == 1
        config = structlog.get_config()
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger
        assert isinstance(config["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_production_renders_json(self, root_logger):
        configure_logging(Settings(environment="production"))
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
