"""Public lead intake endpoint (landing page and contact form)."""

import asyncio

from src.services.lead_service import LeadService
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


def handler(request, service: LeadService = None):
    """Store an inbound lead and return it with its score."""
    with correlation_context(request_header(request, LoggingConfig.LOG_CORRELATION_ID_HEADER)):
        if (request.get("method") or "POST").upper() != "POST":
            return failure_response(405, "Method not allowed")
        try:
            body = parse_json_body(request)
            lead = asyncio.run((service or LeadService()).create_lead(body))
            logger.info("Lead submitted", lead_id=lead.id, lead_score=lead.lead_score)
            return success_response(
                {"id": lead.id, "lead_score": lead.lead_score, "status": lead.status.value},
                message="Thank you! We will contact you soon.",
                status_code=201,
            )
        except Exception as e:
            return error_response(e)
