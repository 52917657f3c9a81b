"""Tests for the JSON log formatter and request ID middleware."""

import json
import logging
import os
import sys
from unittest.mock import MagicMock

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.logging import JsonFormatter, build_handler


def make_record(**extra):
    record = logging.LogRecord("diskhealth.tools.smartctl", logging.WARNING, __file__, 10,
                               "smartctl failed for %s", ("/dev/sda",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_renders_message_and_extras():
    payload = json.loads(JsonFormatter().format(make_record(device="/dev/sda", duration_ms=1.5)))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "diskhealth.tools.smartctl"
    assert payload["message"] == "smartctl failed for /dev/sda"
    assert payload["device"] == "/dev/sda"
    assert payload["duration_ms"] == 1.5
    assert "request_id" not in payload
    assert "args" not in payload


def test_build_handler_text_format():
    handler = build_handler("text")

    assert not isinstance(handler.formatter, JsonFormatter)
    assert "WARNING" in handler.format(make_record())


def test_request_id_is_echoed():
    collector = MagicMock()
    collector.snapshot.return_value.collected_at = None
    app = create_app({'TESTING': True}, collector=collector, metrics=MagicMock())

    with app.test_client() as client:
        response = client.get('/health', headers={'X-Request-ID': 'scrape-42'})
        generated = client.get('/health')

    assert response.headers['X-Request-ID'] == 'scrape-42'
    assert len(generated.headers['X-Request-ID']) == 32
