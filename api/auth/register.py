"""Public registration endpoint."""

import asyncio

from src.services.auth_service import AuthService
from src.utils.logging import correlation_context, get_structured_logger, setup_logging
from src.utils.logging_config import LoggingConfig
from src.utils.responses import (
    error_response,
    failure_response,
    parse_json_body,
    request_header,
    success_response,
)

setup_logging()
logger = get_structured_logger(__name__)


def handler(request, service: AuthService = None):
    """
    Register an account; it stays pending until an admin approves it.

    Returns 201 with the identity and verification request ids.
    """
    with correlation_context(request_header(request, LoggingConfig.LOG_CORRELATION_ID_HEADER)):
        if (request.get("method") or "POST").upper() != "POST":
            return failure_response(405, "Method not allowed")
        try:
            body = parse_json_body(request)
            result = asyncio.run((service or AuthService()).register(body))
            logger.info("Registration accepted", user_id=result["user_id"])
            return success_response(result, message=result["message"], status_code=201)
        except Exception as e:
            return error_response(e)
