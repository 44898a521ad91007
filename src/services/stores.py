"""Entity stores: identities, verification requests, listings and leads."""

from typing import Optional
from src.services.supabase_client import SupabaseTable
from src.utils.errors import DuplicateIdentityError
from src.utils.query import Filters


class IdentityStore(SupabaseTable):
    """Identity records. Emails are stored lower-cased and unique."""
    table_name = "identities"
    search_columns = ("first_name", "last_name", "email")

    def _on_unique_violation(self, error: Exception) -> None:
        raise DuplicateIdentityError("User with this email already exists")

    async def find_by_email(self, email: str) -> Optional[dict]:
        return await self.find_one(Filters().eq("email", email.strip().lower()))


class VerificationRequestStore(SupabaseTable):
    table_name = "verification_requests"
    search_columns = (
        "user_details->>first_name",
        "user_details->>last_name",
        "user_details->>email",
        "user_details->>position",
    )

    async def find_latest_by_user(self, user_id: str) -> Optional[dict]:
        return await self.find_one(Filters().eq("user_id", user_id), sort="requested_at", desc=True)


class ListingStore(SupabaseTable):
    table_name = "listings"
    search_columns = ("title", "description", "location")


class LeadStore(SupabaseTable):
    table_name = "leads"
    search_columns = ("name", "phone_number", "email", "message")
