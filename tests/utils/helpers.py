"""Test helper functions."""

import json
from typing import Dict, Any


def create_vercel_request(
    method: str = "POST",
    path: str = "/api/leads/submit",
    body: Any = None,
    headers: Dict[str, str] = None,
    query: Dict[str, str] = None
) -> Dict[str, Any]:
    """Create a Vercel request object for testing."""
    if headers is None:
        headers = {
            "content-type": "application/json"
        }

    return {
        "method": method,
        "path": path,
        "headers": headers,
        "body": json.dumps(body) if isinstance(body, dict) else body,
        "query": query or {}
    }
