import json
import logging

from chatorder.core.logging_setup import JsonFormatter, mask_phone, redact
from chatorder.core.request_context import clear_request_context, set_request_context


def _record(message, *args, **extra):
    record = logging.LogRecord("chatorder.test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_phone_masking():
    assert mask_phone("+91 98765 43210") == "********3210"
    assert mask_phone("123") == "123"
    assert mask_phone(None) is None


def test_redact_hides_secrets_and_long_numbers():
    text = redact("key=rzp_live_abc token: xyz called 919876543210")

    assert "rzp_live_abc" not in text
    assert "xyz" not in text
    assert "********3210" in text


def test_json_line_carries_conversation_context():
    set_request_context(request_id="req-1", tenant_id="7", customer="919876543210", state="ordering_qty")
    try:
        line = json.loads(JsonFormatter().format(_record("[FSM] %s -> %s", "idle", "ordering_qty", lane="menu")))
    finally:
        clear_request_context()

    assert line["request_id"] == "req-1"
    assert line["tenant_id"] == "7"
    assert line["customer"] == "********3210"
    assert line["state"] == "ordering_qty"
    assert line["message"] == "[FSM] idle -> ordering_qty"
    assert line["lane"] == "menu"
    assert "source" not in line
