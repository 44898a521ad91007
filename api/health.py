"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
import json

from src.utils.clock import now_iso
from src.utils.config import get_config

SERVICE_NAME = "estatehub-backend"


def health_payload() -> dict:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "environment": get_config().environment,
        "timestamp": now_iso(),
    }


class handler(BaseHTTPRequestHandler):
    """Liveness probe for the serverless deployment."""

    def do_GET(self):
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        self.wfile.write(json.dumps(health_payload()).encode('utf-8'))

    def do_POST(self):
        self.do_GET()
