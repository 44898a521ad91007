"""Tests for response envelopes."""

import json
import pytest

from src.utils.config import WorkflowConfig
from src.utils.errors import NotFoundError, ValidationFailedError
from src.utils.logging import correlation_context
from src.utils.responses import error_response, parse_json_body, request_header, success_response
from tests.utils.assertions import assert_valid_response

PRODUCTION = WorkflowConfig(environment="production")
DEVELOPMENT = WorkflowConfig(environment="development")


@pytest.mark.unit
def test_success_response():
    body = assert_valid_response(
        success_response({"id": "1"}, message="Created", status_code=201, pagination={"page": 1}),
        201,
    )
    assert body == {"success": True, "message": "Created", "data": {"id": "1"}, "pagination": {"page": 1}}


@pytest.mark.unit
def test_domain_error_maps_status_and_message():
    body = assert_valid_response(error_response(NotFoundError("Property not found"), PRODUCTION), 404)
    assert body == {"success": False, "message": "Property not found"}


@pytest.mark.unit
def test_validation_error_includes_details():
    error = ValidationFailedError("Invalid input data", details=[{"field": "email", "message": "bad"}])
    body = assert_valid_response(error_response(error, PRODUCTION), 400)
    assert body["errors"] == [{"field": "email", "message": "bad"}]


@pytest.mark.unit
def test_unknown_error_hides_detail_in_production():
    body = assert_valid_response(error_response(RuntimeError("db password is hunter2"), PRODUCTION), 500)
    assert body["message"] == "Internal server error"
    assert "hunter2" not in json.dumps(body)


@pytest.mark.unit
def test_development_includes_traceback():
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        response = error_response(e, DEVELOPMENT)

    body = assert_valid_response(response, 500)
    assert body["error"]["type"] == "RuntimeError"
    assert any("boom" in line for line in body["error"]["traceback"])


@pytest.mark.unit
def test_correlation_id_header():
    with correlation_context("req_abc"):
        response = success_response()
    assert response["headers"]["X-Correlation-ID"] == "req_abc"


@pytest.mark.unit
def test_parse_json_body():
    assert parse_json_body({"body": '{"a": 1}'}) == {"a": 1}
    assert parse_json_body({"body": b'{"a": 2}'}) == {"a": 2}
    assert parse_json_body({"body": {"a": 3}}) == {"a": 3}
    assert parse_json_body({}) == {}
    with pytest.raises(ValidationFailedError):
        parse_json_body({"body": "{not json"})
    with pytest.raises(ValidationFailedError):
        parse_json_body({"body": "[1, 2]"})


@pytest.mark.unit
def test_request_header_is_case_insensitive():
    assert request_header({"headers": {"x-correlation-id": "abc"}}, "X-Correlation-ID") == "abc"
    assert request_header({}, "X-Correlation-ID") is None
