"""Verification request model - one per identity, reviewed once."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from src.models.common import ReviewStatus


class UserDetails(BaseModel):
    """Snapshot of the reviewable identity attributes at submission time."""
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    description: Optional[str] = None
    position: Optional[str] = None
    rating: Optional[float] = None
    profile_image: Optional[str] = None


class VerificationRequest(BaseModel):
    """Verification request model."""
    id: str = Field(..., description="Request ID (ULID text)")
    user_id: str = Field(..., description="Identity under review")
    status: ReviewStatus = ReviewStatus.PENDING
    requested_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = Field(None, max_length=1000)
    rejection_reason: Optional[str] = Field(None, max_length=500)
    user_details: UserDetails
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ReviewStatus.PENDING

    def processing_hours(self) -> Optional[float]:
        if self.reviewed_at is None:
            return None
        return (self.reviewed_at - self.requested_at).total_seconds() / 3600


class VerificationStats(BaseModel):
    """Verification queue statistics."""
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    pending_today: int = 0
    approved_today: int = 0
    rejected_today: int = 0
    average_processing_hours: float = 0.0
