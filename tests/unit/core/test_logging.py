"""Unit tests for logging helpers."""

import logging

import pytest

from widgetsync.core import logging_config
from widgetsync.core.logging_config import coerce_level, configure_logging
from widgetsync.core.logging_utils import (
    StructuredLogger,
    ensure_structured_logger,
    get_module_logger,
)


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    package_level = logging.getLogger("widgetsync").level
    configured = logging_config._configured
    yield
    logging.getLogger("widgetsync").setLevel(package_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging_config._configured = configured


class TestStructuredLogger:
    """Test component tagging."""

    def test_namespace_and_component(self):
        logger = get_module_logger("WidgetModel.m1")

        assert logger.name == "widgetsync.WidgetModel.m1"
        assert logger.component == "WidgetModel.m1"

    def test_messages_tagged(self, caplog):
        logger = get_module_logger("ViewList")

        with caplog.at_level(logging.INFO, logger="widgetsync"):
            logger.info("removed %d views", 2)

        assert "[ViewList] removed 2 views" in caplog.text

    def test_bad_format_args_kept(self, caplog):
        logger = get_module_logger("Odd")

        with caplog.at_level(logging.INFO, logger="widgetsync"):
            logger.info("no placeholders", "extra")

        assert "args=extra" in caplog.text

    def test_ensure_wraps_plain_logger(self):
        plain = logging.getLogger("widgetsync.Plain")

        wrapped = ensure_structured_logger(plain, component="Plain")

        assert isinstance(wrapped, StructuredLogger)
        assert wrapped.logger is plain

    def test_ensure_falls_back(self):
        wrapped = ensure_structured_logger(None, fallback_name="Queue")

        assert wrapped.name == "widgetsync.Queue"

    def test_get_child(self):
        child = get_module_logger("Registry").getChild("views")

        assert child.component == "Registry.views"


class TestConfigureLogging:
    """Test root handler setup."""

    def test_coerce_level(self):
        assert coerce_level("debug") == logging.DEBUG
        assert coerce_level(logging.WARNING) == logging.WARNING
        with pytest.raises(ValueError):
            coerce_level("loud")

    def test_rotating_file_handler(self, tmp_path, restore_root_logging):
        log_file = tmp_path / "logs" / "sync.log"

        configure_logging("INFO", force=True, log_file=log_file)
        get_module_logger("Test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[Test] hello file" in log_file.read_text(encoding="utf-8")
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_second_call_only_changes_level(self, restore_root_logging):
        configure_logging("INFO", force=True)
        handlers = list(logging.getLogger().handlers)

        configure_logging("DEBUG")

        assert logging.getLogger().handlers == handlers
        assert logging.getLogger("widgetsync").level == logging.DEBUG
