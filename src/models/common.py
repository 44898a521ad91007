"""Shared enums and envelopes used by all three workflows."""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

from src.utils.errors import UnauthorizedError
from src.utils.query import page_count

T = TypeVar("T")


class Role(str, Enum):
    """Identity roles, ordered by privilege."""
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank

    @classmethod
    def top(cls) -> "Role":
        return cls.SUPER_ADMIN

    @classmethod
    def coerce(cls, value: Any) -> Optional["Role"]:
        """Accept a Role, a role string, or None (anonymous)."""
        if value is None or isinstance(value, Role):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise UnauthorizedError(f"Unknown role: {value}", role=str(value))


_ROLE_RANKS = {Role.USER: 0, Role.ADMIN: 1, Role.SUPER_ADMIN: 2}


class ReviewStatus(str, Enum):
    """Three-state review pattern shared by verification requests and listings."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QueryParams(BaseModel):
    """Pagination, sorting, search and filter options for list queries."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    sort: Optional[str] = Field(None, description="Column name, prefixed with '-' for descending")
    search: Optional[str] = None
    filters: dict[str, Any] = Field(default_factory=dict)


class Page(BaseModel, Generic[T]):
    """One page of results with the total match count."""
    items: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    pages: int = 0

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "Page":
        return cls(items=items, total=total, page=page, limit=limit, pages=page_count(total, limit))

    def pagination(self) -> dict:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


class BulkItemError(BaseModel):
    """Failure of one item inside a bulk operation."""
    id: str
    error: str


class BulkResult(BaseModel, Generic[T]):
    """Outcome of a bulk operation: successes in input order plus per-item errors."""
    succeeded: list[T] = Field(default_factory=list)
    errors: list[BulkItemError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
