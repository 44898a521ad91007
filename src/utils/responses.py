"""Response envelopes for the serverless handlers."""

import json
import traceback
from typing import Any, Optional

from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import EstateHubError, ValidationFailedError
from src.utils.logging import get_correlation_id, get_structured_logger

logger = get_structured_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}
INTERNAL_ERROR_MESSAGE = "Internal server error"


def parse_json_body(request: dict) -> dict:
    """Decode a JSON request body into a dict."""
    body = request.get("body") or {}
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        try:
            body = json.loads(body) if body.strip() else {}
        except json.JSONDecodeError:
            raise ValidationFailedError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationFailedError("Request body must be a JSON object")
    return body


def request_header(request: dict, name: str) -> Optional[str]:
    headers = request.get("headers") or {}
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def _json_response(status_code: int, body: dict) -> dict:
    headers = dict(JSON_HEADERS)
    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Correlation-ID"] = correlation_id
    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body, default=str),
    }


def success_response(
    data: Any = None,
    message: str = "Success",
    status_code: int = 200,
    pagination: Optional[dict] = None,
) -> dict:
    body: dict = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return _json_response(status_code, body)


def failure_response(status_code: int, message: str) -> dict:
    return _json_response(status_code, {"success": False, "message": message})


def error_response(error: Exception, config: Optional[WorkflowConfig] = None) -> dict:
    """
    Map an exception to the failure envelope.

    Unknown exceptions become a generic 500. Stack traces are only included
    in development.
    """
    config = config or get_config()

    if isinstance(error, EstateHubError):
        status_code = error.status_code
        message = error.message or type(error).__name__
    else:
        status_code = 500
        message = INTERNAL_ERROR_MESSAGE
        logger.error("Unhandled error", exc_info=error, error_type=type(error).__name__)

    body: dict = {"success": False, "message": message}
    if isinstance(error, ValidationFailedError) and error.details:
        body["errors"] = error.details
    if config.is_development:
        body["error"] = {
            "type": type(error).__name__,
            "detail": str(error),
            "traceback": traceback.format_exception(type(error), error, error.__traceback__),
        }
    return _json_response(status_code, body)
