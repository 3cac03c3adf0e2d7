"""Tests for logging configuration."""

import json
import logging
import sys

import pytest

from sortbox.logging import (
    ItemContextFilter,
    JSONFormatter,
    set_item_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    set_item_context(None)
    logger = logging.getLogger("sortbox")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="sortbox.classifier.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Classified %s",
        args=("msg-1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_basic_fields(self):
        """Test the core fields of a JSON log line."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "sortbox.classifier.engine"
        assert data["message"] == "Classified msg-1"
        assert data["timestamp"].endswith("Z")
        assert "lineno" not in data

    def test_classifier_fields_come_first(self):
        """Test classifier fields follow the message in a fixed order."""
        record = make_record(candidates=2, confidence=0.94, bucket="Finanzen", item_id="m-1")
        data = json.loads(JSONFormatter().format(record))

        assert list(data)[4:] == ["item_id", "bucket", "confidence", "candidates"]

    def test_none_fields_are_dropped(self):
        """Test extra fields set to None are left out."""
        data = json.loads(JSONFormatter().format(make_record(item_id=None, bucket="Inbox")))

        assert "item_id" not in data
        assert data["bucket"] == "Inbox"

    def test_exception(self):
        """Test exceptions are formatted."""
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in data["exception"]


class TestItemContext:
    """Tests for tagging records with the current item."""

    def test_fills_missing_item_id(self):
        """Test records without an item id get the current one."""
        context = ItemContextFilter()
        context.item_id = "msg-7"
        record = make_record()

        assert context.filter(record) is True
        assert record.item_id == "msg-7"

    def test_fills_explicit_none(self):
        """Test an item_id of None passed via extra is filled in."""
        context = ItemContextFilter()
        context.item_id = "msg-7"
        record = make_record(item_id=None)

        context.filter(record)
        assert record.item_id == "msg-7"

    def test_keeps_own_item_id(self):
        """Test a record's own item id wins."""
        context = ItemContextFilter()
        context.item_id = "msg-7"
        record = make_record(item_id="msg-1")

        context.filter(record)
        assert record.item_id == "msg-1"

    def test_no_context(self):
        """Test nothing is added without a current item."""
        record = make_record()
        ItemContextFilter().filter(record)
        assert not hasattr(record, "item_id")

    def test_child_logger_records_are_tagged(self, tmp_path, monkeypatch):
        """Test records from classifier loggers carry the item id."""
        monkeypatch.setenv("SORTBOX_HOME", str(tmp_path))
        setup_logging(json_format=True, log_to_file=True)
        set_item_context("msg-7")

        logging.getLogger("sortbox.classifier.rules").info("Created rule", extra={"bucket": "A"})
        for handler in logging.getLogger("sortbox").handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "sortbox.log").read_text(encoding="utf-8").splitlines()
        data = json.loads(lines[-1])
        assert data["item_id"] == "msg-7"
        assert data["bucket"] == "A"


class TestSetup:
    """Tests for logger setup."""

    def test_default_level(self):
        """Test INFO level with a quiet console."""
        logger = setup_logging()

        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING

    def test_verbose(self):
        """Test verbose enables debug output."""
        logger = setup_logging(verbose=True)

        assert logger.level == logging.DEBUG
        assert logger.handlers[0].level == logging.DEBUG

    def test_json_format(self):
        """Test the JSON formatter is installed."""
        logger = setup_logging(json_format=True)
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_reconfigure_replaces_handlers(self):
        """Test repeated setup does not stack handlers."""
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_log_to_file(self, tmp_path, monkeypatch):
        """Test plain-text file logging under the config directory."""
        monkeypatch.setenv("SORTBOX_HOME", str(tmp_path))

        logger = setup_logging(log_to_file=True)
        logger.info("hello file")
        for handler in logger.handlers:
            handler.flush()

        assert "hello file" in (tmp_path / "logs" / "sortbox.log").read_text()
