"""Workflow configuration passed explicitly into services."""

import os
from typing import Optional
from pydantic import BaseModel, Field


DEFAULT_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]


class ScoreWeights(BaseModel):
    """Points awarded per lead signal."""
    name: int = 10
    phone: int = 15
    email: int = 10
    message_over_50: int = 10
    message_over_100: int = 5
    budget: int = 15
    budget_min: int = 5
    budget_max: int = 5
    location: int = 10
    location_city: int = 5
    location_state: int = 5
    per_property_interest: int = 5
    per_tag: int = 2
    max_score: int = 100


class PaginationConfig(BaseModel):
    """Pagination defaults."""
    default_page: int = Field(default=1, ge=1)
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)


class WorkflowConfig(BaseModel):
    """Configuration shared by the verification, listing and lead services."""
    environment: str = Field(default="production", description="development, test or production")
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    score_weights: ScoreWeights = Field(default_factory=ScoreWeights)
    rescore_on_update: bool = Field(
        default=False,
        description="Recompute lead_score when scoring fields change on update"
    )
    max_rejection_reason_length: int = 500
    max_review_notes_length: int = 1000
    max_listing_images: int = 20
    max_rooms: int = 20
    max_file_size: int = 10 * 1024 * 1024
    allowed_image_types: list[str] = Field(default_factory=lambda: list(DEFAULT_IMAGE_TYPES))
    storage_bucket: str = "listings"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "WorkflowConfig":
        """Build configuration from environment variables."""
        allowed_types = os.environ.get("ALLOWED_FILE_TYPES")
        return cls(
            environment=os.environ.get("ENVIRONMENT", "production"),
            pagination=PaginationConfig(
                default_limit=int(os.environ.get("PAGINATION_DEFAULT_LIMIT", "10")),
                max_limit=int(os.environ.get("PAGINATION_MAX_LIMIT", "100")),
            ),
            rescore_on_update=os.environ.get("LEAD_RESCORE_ON_UPDATE", "false").lower() == "true",
            max_listing_images=int(os.environ.get("MAX_LISTING_IMAGES", "20")),
            max_file_size=int(os.environ.get("MAX_FILE_SIZE", str(10 * 1024 * 1024))),
            allowed_image_types=(
                [t.strip() for t in allowed_types.split(",") if t.strip()]
                if allowed_types else list(DEFAULT_IMAGE_TYPES)
            ),
            storage_bucket=os.environ.get("SUPABASE_STORAGE_BUCKET", "listings"),
            bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", "12")),
        )


_config: Optional[WorkflowConfig] = None


def get_config() -> WorkflowConfig:
    """Get or create the process default configuration."""
    global _config

    if _config is None:
        _config = WorkflowConfig.from_env()

    return _config


def reset_config() -> None:
    """Drop the cached default configuration."""
    global _config
    _config = None
