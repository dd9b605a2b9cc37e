from __future__ import annotations

import logging

from hetu.observability.logging import ContextFilter, bind_request_id, bind_user_id
from hetu.observability.sentry import scrub_event


def test_context_filter_stamps_request_and_user():
    bind_request_id("req-1")
    bind_user_id("editor-1")
    record = logging.LogRecord("hetu", logging.INFO, __file__, 1, "hello", None, None)
    assert ContextFilter().filter(record) is True
    assert record.request_id == "req-1"
    assert record.user_id == "editor-1"


def test_new_request_forgets_previous_user():
    bind_user_id("editor-1")
    bind_request_id("req-2")
    record = logging.LogRecord("hetu", logging.INFO, __file__, 1, "hello", None, None)
    ContextFilter().filter(record)
    assert record.user_id == ""


def test_scrub_event_hides_tokens():
    event = {
        "request": {
            "headers": {"Authorization": "Bearer abc", "X-CSRF-Token": "t", "Accept": "application/json"},
            "cookies": {"sb-access-token": "abc", "csrf-token": "t"},
        }
    }
    scrubbed = scrub_event(event)
    headers = scrubbed["request"]["headers"]
    assert headers["Authorization"] == "[scrubbed]"
    assert headers["X-CSRF-Token"] == "[scrubbed]"
    assert headers["Accept"] == "application/json"
    assert set(scrubbed["request"]["cookies"].values()) == {"[scrubbed]"}


def test_scrub_event_without_request():
    assert scrub_event({"message": "boom"}) == {"message": "boom"}
