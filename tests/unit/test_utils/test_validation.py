"""Tests for input validation helpers."""

import pytest

from src.models.lead import LeadSubmission
from src.utils.errors import ValidationFailedError
from src.utils.validation import normalize_email, normalize_phone, parse_input


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [
    ("(555) 123-4567", "5551234567"),
    ("+1 555 123 4567", "15551234567"),
    ("555.123.4567", "5551234567"),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", None, "555-1234", "1234567890123456"])
def test_normalize_phone_rejects(raw):
    with pytest.raises(ValueError):
        normalize_phone(raw)


@pytest.mark.unit
def test_normalize_email():
    assert normalize_email("  Jane.Doe+home@Example.COM ") == "jane.doe+home@example.com"
    with pytest.raises(ValueError):
        normalize_email("jane@")


@pytest.mark.unit
def test_parse_input_wraps_validation_errors():
    with pytest.raises(ValidationFailedError) as exc_info:
        parse_input(LeadSubmission, {"phone_number": "5551234567"})

    assert exc_info.value.status_code == 400
    assert exc_info.value.details[0]["field"] == "name"
    assert exc_info.value.message.startswith("Invalid input data")


@pytest.mark.unit
def test_parse_input_passes_models_through():
    lead = LeadSubmission(name="Jane", phone_number="5551234567")
    assert parse_input(LeadSubmission, lead) is lead
