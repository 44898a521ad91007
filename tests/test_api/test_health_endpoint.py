"""Tests for health check endpoint."""

import pytest
import json
from io import BytesIO
from unittest.mock import Mock
from http.server import BaseHTTPRequestHandler
from freezegun import freeze_time

from api.health import SERVICE_NAME, handler, health_payload


class MockSocket:
    def __init__(self, request_line: bytes):
        self.request_line = request_line

    def makefile(self, *args, **kwargs):
        return BytesIO(self.request_line)

    def sendall(self, data):
        pass

    def close(self):
        pass


def call_handler(method: str) -> tuple:
    h = handler(MockSocket(f"{method} /api/health HTTP/1.1\r\n\r\n".encode()), ("127.0.0.1", 8000), None)
    h.wfile = BytesIO()
    h.send_response = Mock()
    h.send_header = Mock()
    h.end_headers = Mock()

    getattr(h, f"do_{method}")()

    h.wfile.seek(0)
    return h, json.loads(h.wfile.read().decode('utf-8'))


@pytest.mark.unit
def test_health_handler_class():
    assert issubclass(handler, BaseHTTPRequestHandler)


@pytest.mark.unit
@pytest.mark.parametrize("method", ["GET", "POST"])
def test_health_request(method):
    h, body = call_handler(method)

    assert h.send_response.call_args[0][0] == 200
    h.send_header.assert_called_with('Content-Type', 'application/json')
    assert body["status"] == "ok"
    assert body["service"] == SERVICE_NAME


@pytest.mark.unit
def test_health_payload():
    with freeze_time("2024-12-09 12:00:00"):
        payload = health_payload()

    assert payload["service"] == "estatehub-backend"
    assert payload["environment"] == "test"
    assert payload["timestamp"].startswith("2024-12-09T12:00:00")
