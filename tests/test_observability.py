import json
import logging

from pos_console.observability import incr_metric, log_event, metric_key, metrics_snapshot, reset_metrics


def test_metric_keys_sort_labels() -> None:
    assert metric_key("session.logins.failed") == "session.logins.failed"
    assert metric_key("x", b=2, a=1) == "x|a=1,b=2"


def test_incr_metric_accumulates() -> None:
    reset_metrics()
    incr_metric("session.expired")
    incr_metric("session.expired")
    incr_metric("impersonation.transitions.failed", transition="enter_store", status_code=404)

    counters = metrics_snapshot()

    assert counters["session.expired"] == 2
    assert counters["impersonation.transitions.failed|status_code=404,transition=enter_store"] == 1


def test_log_event_never_emits_tokens(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="pos_console"):
        log_event("login_succeeded", request_id="req-1", username="owner", access_token="acc-1", password="pw")

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {"event": "login_succeeded", "request_id": "req-1", "username": "owner"}
