import json
import logging

from needflow.core.logging_config import ContextFilter, JsonFormatter
from needflow.core.request_context import set_request_context, set_user


def _record(msg, **extra):
    record = logging.LogRecord("needflow.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_redacts_secrets():
    out = json.loads(JsonFormatter().format(_record("login password=hunter2 token: abc")))
    assert "hunter2" not in out["msg"]
    assert "abc" not in out["msg"]
    assert out["level"] == "INFO"


def test_json_formatter_includes_workflow_fields():
    out = json.loads(JsonFormatter().format(_record("Request approved successfully", ticket_id="REQ-2026-0001", actor_id=3)))
    assert out["ticket_id"] == "REQ-2026-0001"
    assert out["actor_id"] == 3
    assert "step_id" not in out


def test_context_filter_copies_request_context():
    set_request_context(request_id="rid-1", path="/api/v1/requests", method="POST")
    set_user("koffi")
    record = _record("x")
    assert ContextFilter().filter(record) is True
    assert record.request_id == "rid-1"
    assert record.user == "koffi"
    set_request_context(request_id=None, path=None, method=None)
    set_user(None)
