"""Tests for listing and verification models."""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from src.models.common import Page
from src.models.listing import Listing, ListingInput, ListingUpdate, UploadedFile
from src.models.verification_request import UserDetails, VerificationRequest
from tests.utils.factories import create_listing_data, create_listing_row


@pytest.mark.unit
def test_listing_status_and_approval_are_independent():
    listing = Listing.model_validate(create_listing_row("agent", "pending", status="available"))
    assert listing.status.value == "available"
    assert listing.approval_status.value == "pending"


@pytest.mark.unit
def test_price_per_square_foot():
    listing = Listing.model_validate(create_listing_row("agent", price=300000, square_feet=1500))
    assert listing.price_per_square_foot == 200
    zero = Listing.model_validate(create_listing_row("agent", square_feet=0))
    assert zero.price_per_square_foot == 0


@pytest.mark.unit
@pytest.mark.parametrize("field,value", [("price", -1), ("bedrooms", 21), ("bathrooms", -1), ("title", "")])
def test_listing_input_bounds(field, value):
    with pytest.raises(ValidationError):
        ListingInput(**create_listing_data(**{field: value}))


@pytest.mark.unit
def test_listing_update_excludes_approval_fields():
    with pytest.raises(ValidationError):
        ListingUpdate(approval_status="approved")
    with pytest.raises(ValidationError):
        ListingUpdate(agent_id="someone-else")


@pytest.mark.unit
def test_uploaded_file_size():
    assert UploadedFile(filename="a.png", content_type="image/png", data=b"1234").size == 4


@pytest.mark.unit
def test_processing_hours():
    request = VerificationRequest(
        id="r1",
        user_id="u1",
        status="approved",
        requested_at=datetime(2024, 12, 9, 8, tzinfo=timezone.utc),
        reviewed_at=datetime(2024, 12, 9, 11, 30, tzinfo=timezone.utc),
        user_details=UserDetails(first_name="A", last_name="B", email="a@example.com"),
    )
    assert request.processing_hours() == 3.5
    assert not request.is_pending


@pytest.mark.unit
def test_page_build():
    page = Page[int].build([1, 2], total=5, page=1, limit=2)
    assert page.pages == 3
    assert page.pagination() == {"page": 1, "limit": 2, "total": 5, "pages": 3}
