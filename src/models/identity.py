"""Identity model - user accounts with a manual verification status."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from src.models.common import ReviewStatus, Role
from src.utils.validation import normalize_email, normalize_phone


class Address(BaseModel):
    """Postal address."""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = Field(default="USA")


class Identity(BaseModel):
    """Identity record - the primary people table."""
    id: str = Field(..., description="Identity ID (ULID text)")
    email: str = Field(..., description="Email address, stored lower-cased")
    password_hash: Optional[str] = Field(None, exclude=True, repr=False)
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    role: Role = Role.USER
    is_active: bool = True
    is_verified: bool = False
    verification_status: ReviewStatus = ReviewStatus.PENDING
    verified_by: Optional[str] = Field(None, description="Reviewer identity ID")
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)
    profile_image: Optional[str] = None
    phone_number: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    position: Optional[str] = Field(None, max_length=100)
    rating: Optional[float] = Field(None, ge=1, le=5)
    address: Optional[Address] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def model_post_init(self, __context: Any) -> None:
        """A verified identity must carry an approved verification status."""
        if self.is_verified and self.verification_status != ReviewStatus.APPROVED:
            raise ValueError("is_verified requires verification_status=approved")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def can_sign_in(self) -> bool:
        if not self.is_active:
            return False
        if self.role == Role.SUPER_ADMIN:
            return True
        return self.verification_status == ReviewStatus.APPROVED


class RegistrationRequest(BaseModel):
    """Self-service registration submission."""
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone_number: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    position: Optional[str] = Field(None, max_length=100)
    rating: Optional[float] = Field(None, ge=1, le=5)
    profile_image: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return normalize_phone(value)

    @field_validator("first_name", "last_name", "position", "description")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value


class CandidateProfile(BaseModel):
    """Registration data with the credential already hashed."""
    email: str
    password_hash: str = Field(..., repr=False)
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    description: Optional[str] = None
    position: Optional[str] = None
    rating: Optional[float] = None
    profile_image: Optional[str] = None
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return normalize_email(value)


class ProfileUpdate(BaseModel):
    """Fields an identity owner may edit on their own profile."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone_number: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    position: Optional[str] = Field(None, max_length=100)
    rating: Optional[float] = Field(None, ge=1, le=5)
    profile_image: Optional[str] = None
    address: Optional[Address] = None

    model_config = {"extra": "forbid"}

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return normalize_phone(value)
