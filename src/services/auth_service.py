"""Identity and authentication - registration, sign-in and profile management."""

from typing import Optional, Union

import bcrypt

from src.models.common import Page, QueryParams, ReviewStatus, Role
from src.models.identity import (
    CandidateProfile,
    Identity,
    ProfileUpdate,
    RegistrationRequest,
)
from src.services.review_workflow import clamp_pagination, coerce_enum
from src.services.stores import IdentityStore
from src.services.user_verification import UserVerificationService
from src.utils.clock import now_iso
from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import (
    AuthenticationError,
    DuplicateIdentityError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from src.utils.ids import new_id
from src.utils.logging import audit, get_structured_logger, mask_email
from src.utils.query import Filters, parse_sort, search_expression
from src.utils.validation import parse_input

logger = get_structured_logger(__name__)

REGISTRATION_MESSAGE = (
    "Registration successful. Your account is pending verification. "
    "Please wait for admin approval."
)
INVALID_CREDENTIALS = "Invalid email or password"
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class AuthService:
    """Credential checks and self-service identity operations."""

    def __init__(
        self,
        identities: Optional[IdentityStore] = None,
        verification: Optional[UserVerificationService] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.config = config or get_config()
        self.identities = identities or IdentityStore()
        self.verification = verification or UserVerificationService(
            identities=self.identities, config=self.config
        )

    def _hash(self, password: str) -> str:
        return hash_password(password, self.config.bcrypt_rounds)

    async def register(self, data: Union[RegistrationRequest, dict]) -> dict:
        """
        Register a new account and queue it for verification.

        Returns:
            Dict with user_id, verification_request_id and a status message
        """
        registration = parse_input(RegistrationRequest, data)
        profile = CandidateProfile(
            **registration.model_dump(exclude={"password"}),
            password_hash=self._hash(registration.password),
        )
        request = await self.verification.create_request(profile)
        return {
            "user_id": request.user_id,
            "verification_request_id": request.id,
            "verification_status": request.status.value,
            "message": REGISTRATION_MESSAGE,
        }

    async def authenticate(self, email: str, password: str) -> Identity:
        """
        Check credentials and sign-in eligibility.

        Raises:
            AuthenticationError: On bad credentials, a deactivated account or
                an account that is not verified
        """
        with audit(logger, "auth.authenticate", record_type="identity", email=mask_email(email)) as fields:
            row = await self.identities.find_by_email(email or "")
            if row is None or not verify_password(password, row.get("password_hash")):
                raise AuthenticationError(INVALID_CREDENTIALS)

            identity = Identity.model_validate(row)
            fields["actor_id"] = fields["record_id"] = identity.id
            if not identity.is_active:
                raise AuthenticationError("Account is deactivated. Please contact support.")
            if not identity.can_sign_in():
                if identity.verification_status == ReviewStatus.REJECTED:
                    reason = identity.rejection_reason or "No reason provided"
                    raise AuthenticationError(f"Your account verification was rejected. Reason: {reason}")
                raise AuthenticationError(
                    "Your account is pending verification. Please wait for admin approval."
                )
            return identity

    async def get_identity(self, identity_id: str) -> Identity:
        row = await self.identities.find_by_id(identity_id)
        if row is None:
            raise NotFoundError("User not found", identity_id=identity_id)
        return Identity.model_validate(row)

    async def list_identities(self, params: Optional[QueryParams] = None) -> Page[Identity]:
        params = params or QueryParams()
        page, limit = clamp_pagination(params.page, params.limit, self.config)
        options = params.filters

        filters = Filters()
        if options.get("role"):
            filters.eq("role", coerce_enum(Role, options["role"], "role"))
        if options.get("verification_status"):
            filters.eq(
                "verification_status",
                coerce_enum(ReviewStatus, options["verification_status"], "verification_status"),
            )
        if options.get("is_active") is not None:
            filters.eq("is_active", bool(options["is_active"]))

        expression = search_expression(self.identities.search_columns, params.search)
        if expression:
            filters.or_(expression)

        sort, desc = parse_sort(params.sort, "-created_at")
        rows, total = await self.identities.find_page(filters, sort, desc, page, limit)
        return Page[Identity].build([Identity.model_validate(r) for r in rows], total, page, limit)

    async def change_password(self, identity_id: str, current_password: str, new_password: str) -> None:
        if not MIN_PASSWORD_LENGTH <= len(new_password or "") <= MAX_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_LENGTH} characters"
            )

        with audit(logger, "auth.change_password", actor_id=identity_id, record_type="identity",
                   record_id=identity_id):
            row = await self.identities.find_by_id(identity_id)
            if row is None:
                raise NotFoundError("User not found", identity_id=identity_id)
            if not verify_password(current_password, row.get("password_hash")):
                raise AuthenticationError("Current password is incorrect")

            await self.identities.update_by_id(identity_id, {
                "password_hash": self._hash(new_password),
                "updated_at": now_iso(),
            })

    async def update_profile(self, identity_id: str, patch: Union[ProfileUpdate, dict]) -> Identity:
        """Edit the owner's own profile. Role and verification fields are not editable here."""
        update = parse_input(ProfileUpdate, patch)
        changes = update.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationFailedError("No fields to update", identity_id=identity_id)

        with audit(logger, "auth.update_profile", actor_id=identity_id, record_type="identity",
                   record_id=identity_id, fields_changed=sorted(changes)):
            changes["updated_at"] = now_iso()
            updated = await self.identities.update_by_id(identity_id, changes)
            if updated is None:
                raise NotFoundError("User not found", identity_id=identity_id)
            return Identity.model_validate(updated)

    async def deactivate_account(self, identity_id: str) -> Identity:
        """Deactivate the caller's own account. There is no self-service reactivation."""
        with audit(logger, "auth.deactivate_account", actor_id=identity_id, record_type="identity",
                   record_id=identity_id):
            updated = await self.identities.update_by_id(identity_id, {
                "is_active": False,
                "updated_at": now_iso(),
            })
            if updated is None:
                raise NotFoundError("User not found", identity_id=identity_id)
            return Identity.model_validate(updated)

    async def create_super_admin(self, data: Union[RegistrationRequest, dict]) -> Identity:
        """Bootstrap a verified top-tier account. Refused in production."""
        if self.config.is_production:
            raise UnauthorizedError("Super admin creation is disabled in production")

        registration = parse_input(RegistrationRequest, data)
        with audit(logger, "auth.create_super_admin", record_type="identity") as fields:
            if await self.identities.find_by_email(registration.email):
                raise DuplicateIdentityError(
                    "User with this email already exists",
                    email=mask_email(registration.email),
                )

            now = now_iso()
            identity_id = new_id()
            row = await self.identities.insert({
                "id": identity_id,
                **registration.model_dump(mode="json", exclude={"password"}),
                "password_hash": self._hash(registration.password),
                "role": Role.SUPER_ADMIN.value,
                "is_active": True,
                "is_verified": True,
                "verification_status": ReviewStatus.APPROVED.value,
                "verified_by": identity_id,
                "verified_at": now,
                "rejection_reason": None,
                "created_at": now,
                "updated_at": now,
            })
            fields["record_id"] = identity_id
            return Identity.model_validate(row)
