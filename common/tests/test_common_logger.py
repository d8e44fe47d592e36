from __future__ import annotations

import json
import logging
import sys

from common.logger import JsonFormatter, bind_request_id, reset_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="ledger_service.app.services.ledger_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="transaction settled id=%s",
        args=("tx-1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_promotes_known_extra_keys(monkeypatch) -> None:
    monkeypatch.delenv("SERVICE_NAME", raising=False)

    line = JsonFormatter().format(
        _record(user_id="user-1", transaction_id="tx-1", unrelated="drop me")
    )
    data = json.loads(line)

    assert data["level"] == "INFO"
    assert data["message"] == "transaction settled id=tx-1"
    assert data["user_id"] == "user-1"
    assert data["transaction_id"] == "tx-1"
    assert "unrelated" not in data
    assert "service_name" not in data


def test_json_formatter_includes_service_name_and_exception(monkeypatch) -> None:
    monkeypatch.setenv("SERVICE_NAME", "ledger-service")

    try:
        raise ValueError("boom")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()

    data = json.loads(JsonFormatter().format(record))

    assert data["service_name"] == "ledger-service"
    assert "ValueError: boom" in data["exc_info"]


def test_json_formatter_uses_bound_request_id() -> None:
    token = bind_request_id("req-42")
    try:
        bound = json.loads(JsonFormatter().format(_record()))
        explicit = json.loads(JsonFormatter().format(_record(request_id="req-explicit")))
    finally:
        reset_request_id(token)
    unbound = json.loads(JsonFormatter().format(_record()))

    assert bound["request_id"] == "req-42"
    assert explicit["request_id"] == "req-explicit"
    assert "request_id" not in unbound
