"""Anonymous listing browse endpoint."""

import asyncio

from src.models.common import QueryParams
from src.services.listing_service import ListingService
from src.utils.errors import ValidationFailedError
from src.utils.logging import correlation_context, setup_logging
from src.utils.logging_config import LoggingConfig
from src.utils.responses import error_response, failure_response, request_header, success_response

setup_logging()

FILTER_KEYS = (
    "property_type",
    "property_for",
    "status",
    "min_price",
    "max_price",
    "bedrooms",
    "bathrooms",
    "city",
    "state",
)


def parse_query(query: dict) -> QueryParams:
    """Build list options from query-string parameters."""
    try:
        return QueryParams(
            page=int(query.get("page") or 1),
            limit=int(query.get("limit") or 10),
            sort=query.get("sort") or None,
            search=query.get("search") or None,
            filters={key: query[key] for key in FILTER_KEYS if query.get(key) not in (None, "")},
        )
    except ValueError as e:
        raise ValidationFailedError(f"Invalid query parameters: {e}")


def handler(request, service: ListingService = None):
    """List approved listings, newest first."""
    with correlation_context(request_header(request, LoggingConfig.LOG_CORRELATION_ID_HEADER)):
        if (request.get("method") or "GET").upper() != "GET":
            return failure_response(405, "Method not allowed")
        try:
            params = parse_query(request.get("query") or {})
            page = asyncio.run((service or ListingService()).list_listings(params))
            return success_response(
                [item.model_dump(mode="json") for item in page.items],
                message="Properties retrieved successfully",
                pagination=page.pagination(),
            )
        except Exception as e:
            return error_response(e)
