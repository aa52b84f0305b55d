import io
import json
import logging
import sys

from deskflow.logging_config import JSONFormatter, get_logger, turn_logger


def _record(context=None, exc_info=None):
    record = logging.LogRecord("deskflow.engine", logging.INFO, __file__, 1, "Turn handled", (), exc_info)
    if context is not None:
        record.context = context
    return record


def _capture(logger_name):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger, handler, stream


class TestJSONFormatter:
    def test_turn_fields_are_top_level(self):
        line = JSONFormatter().format(
            _record({"sender": "5215550001111", "message_id": "m1", "action": "committed"})
        )
        data = json.loads(line)
        assert data["sender"] == "5215550001111"
        assert data["message_id"] == "m1"
        assert data["context"] == {"action": "committed"}
        assert data["logger"] == "deskflow.engine"

    def test_context_only_turn_fields(self):
        data = json.loads(JSONFormatter().format(_record({"domain": "ticket"})))
        assert data["domain"] == "ticket"
        assert "context" not in data

    def test_none_values_stay_in_context(self):
        data = json.loads(JSONFormatter().format(_record({"domain": None})))
        assert "domain" not in data
        assert data["context"] == {"domain": None}

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            data = json.loads(JSONFormatter().format(_record(exc_info=sys.exc_info())))
        assert "RuntimeError: boom" in data["exception"]

    def test_unicode_is_kept(self):
        data = JSONFormatter().format(_record({"title": "Reunión"}))
        assert "Reunión" in data


class TestTurnLogger:
    def test_bound_and_call_context_merge(self):
        logger, handler, stream = _capture("deskflow.turn-test")
        try:
            turn_logger("turn-test", "5215550001111", "m1").info("Turn handled", context={"step": "branch"})
        finally:
            logger.removeHandler(handler)

        data = json.loads(stream.getvalue())
        assert data["sender"] == "5215550001111"
        assert data["message_id"] == "m1"
        assert data["context"] == {"step": "branch"}

    def test_without_message_id(self):
        logger, handler, stream = _capture("deskflow.turn-test-2")
        try:
            turn_logger("turn-test-2", "5215550001111").warning("Provider failure")
        finally:
            logger.removeHandler(handler)

        data = json.loads(stream.getvalue())
        assert "message_id" not in data
        assert data["level"] == "WARNING"

    def test_namespace(self):
        assert get_logger("router").name == "deskflow.router"
