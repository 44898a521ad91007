"""Listing models - property records with a market status and an approval status."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from src.models.common import ReviewStatus
from src.utils.query import round_half_up


class ListingStatus(str, Enum):
    """Market state, independent of approval."""
    AVAILABLE = "available"
    SOLD = "sold"
    RENTED = "rented"
    PENDING_SALE = "pending_sale"


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    HOTEL = "hotel"
    TOWNHOUSE = "townhouse"
    COMMERCIAL = "commercial"


class PropertyFor(str, Enum):
    SALE = "sale"
    RENT = "rent"


class OwnerContact(BaseModel):
    """Owner contact block, only shown to the agent and admins."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class Listing(BaseModel):
    """Real estate listing."""
    id: str = Field(..., description="Listing ID (ULID text)")
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=2000)
    price: float = Field(..., ge=0)
    location: str = Field(..., max_length=200)
    property_type: PropertyType
    property_for: PropertyFor
    bedrooms: int = Field(..., ge=0, le=20)
    bathrooms: float = Field(..., ge=0, le=20)
    square_feet: float = Field(..., ge=0)
    images: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)
    status: ListingStatus = ListingStatus.AVAILABLE
    owner: Optional[OwnerContact] = None
    agent_id: str = Field(..., description="Identity allowed to edit the listing")
    approval_status: ReviewStatus = ReviewStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def price_per_square_foot(self) -> int:
        return round_half_up(self.price / self.square_feet) if self.square_feet > 0 else 0


class ListingInput(BaseModel):
    """Fields supplied when creating a listing."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    location: str = Field(..., min_length=1, max_length=200)
    property_type: PropertyType
    property_for: PropertyFor
    bedrooms: int = Field(..., ge=0, le=20)
    bathrooms: float = Field(..., ge=0, le=20)
    square_feet: float = Field(..., ge=0)
    images: list[str] = Field(default_factory=list, max_length=20)
    amenities: list[str] = Field(default_factory=list)
    status: ListingStatus = ListingStatus.AVAILABLE
    owner: Optional[OwnerContact] = None

    @field_validator("title", "description", "location")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class ListingUpdate(BaseModel):
    """Editable listing fields. Approval fields are owned by the approval workflow."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    property_type: Optional[PropertyType] = None
    property_for: Optional[PropertyFor] = None
    bedrooms: Optional[int] = Field(None, ge=0, le=20)
    bathrooms: Optional[float] = Field(None, ge=0, le=20)
    square_feet: Optional[float] = Field(None, ge=0)
    amenities: Optional[list[str]] = None
    status: Optional[ListingStatus] = None
    owner: Optional[OwnerContact] = None

    model_config = {"extra": "forbid"}


class UploadedFile(BaseModel):
    """Raw file handed to the blob delegate."""
    filename: str
    content_type: str
    data: bytes = Field(..., repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class ListingStats(BaseModel):
    """Listing statistics."""
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_approval_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    average_price: int = 0
