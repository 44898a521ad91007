"""Lead models - inbound sales leads with status, priority, assignment and score."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from src.utils.validation import normalize_email, normalize_phone


class LeadSource(str, Enum):
    LANDING_PAGE = "landing_page"
    CONTACT_FORM = "contact_form"
    REFERRAL = "referral"
    OTHER = "other"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    CLOSED = "closed"


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BudgetRange(BaseModel):
    min: float = Field(default=0, ge=0)
    max: float = Field(default=0, ge=0)


class PreferredLocation(BaseModel):
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)


class Lead(BaseModel):
    """Lead record."""
    id: str = Field(..., description="Lead ID (ULID text)")
    name: str = Field(..., max_length=100)
    phone_number: str
    email: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)
    source: LeadSource = LeadSource.LANDING_PAGE
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)
    tags: list[str] = Field(default_factory=list)
    property_interests: list[str] = Field(default_factory=list)
    estimated_budget: Optional[BudgetRange] = None
    preferred_location: Optional[PreferredLocation] = None
    lead_score: int = Field(default=0, ge=0, le=100)
    conversion_probability: int = Field(default=0, ge=0, le=100)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def contact_info(self) -> str:
        suffix = f" ({self.email})" if self.email else ""
        return f"{self.name} - {self.phone_number}{suffix}"


class LeadSubmission(BaseModel):
    """Inbound lead as submitted by a landing page, contact form or referral."""
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str
    email: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)
    source: LeadSource = LeadSource.LANDING_PAGE
    priority: LeadPriority = LeadPriority.MEDIUM
    notes: Optional[str] = Field(None, max_length=2000)
    tags: list[str] = Field(default_factory=list)
    property_interests: list[str] = Field(default_factory=list)
    estimated_budget: Optional[BudgetRange] = None
    preferred_location: Optional[PreferredLocation] = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Lead name is required")
        return value

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, value: str) -> str:
        return normalize_phone(value)

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return normalize_email(value)

    @field_validator("message")
    @classmethod
    def _message(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value else value

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        tags = [t.strip() for t in value if t and t.strip()]
        if any(len(t) > 50 for t in tags):
            raise ValueError("Tag cannot exceed 50 characters")
        return tags


class LeadUpdate(BaseModel):
    """Editable lead fields."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    notes: Optional[str] = Field(None, max_length=2000)
    tags: Optional[list[str]] = None
    property_interests: Optional[list[str]] = None
    estimated_budget: Optional[BudgetRange] = None
    preferred_location: Optional[PreferredLocation] = None
    conversion_probability: Optional[int] = Field(None, ge=0, le=100)

    model_config = {"extra": "forbid"}

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return normalize_email(value)


class LeadStats(BaseModel):
    """Lead statistics."""
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    unassigned: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    average_lead_score: int = 0
    conversion_rate: int = 0
