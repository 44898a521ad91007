"""User verification workflow - registration requests reviewed by an admin."""

from typing import Optional, Union

from src.models.common import BulkResult, Page, QueryParams, ReviewStatus
from src.models.identity import CandidateProfile
from src.models.verification_request import UserDetails, VerificationRequest, VerificationStats
from src.services.review_workflow import (
    ReviewWorkflow,
    clamp_pagination,
    coerce_enum,
    filter_timestamp,
    run_bulk,
)
from src.services.stores import IdentityStore, VerificationRequestStore
from src.utils.clock import local_midnight_iso, now_iso, parse_iso
from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import (
    DependencyUnavailableError,
    DuplicateIdentityError,
    NotFoundError,
)
from src.utils.ids import new_id
from src.utils.logging import audit, get_structured_logger, mask_email, timed
from src.utils.query import Filters, all_of, parse_sort, round_half_up, search_expression
from src.utils.validation import parse_input

logger = get_structured_logger(__name__)


class VerificationWorkflow(ReviewWorkflow):
    """Review transitions for verification requests; mirrors the outcome onto the identity."""

    record_type = "verification_request"
    record_label = "Verification request"
    notes_field = "review_notes"

    def __init__(
        self,
        requests: VerificationRequestStore,
        identities: IdentityStore,
        config: WorkflowConfig,
    ):
        super().__init__(requests, config, logger)
        self.identities = identities

    async def after_transition(self, record, decision, reviewer_id, reason) -> None:
        approved = decision == ReviewStatus.APPROVED
        patch = {
            "verification_status": decision.value,
            "is_verified": approved,
            "verified_by": reviewer_id,
            "verified_at": record.get(self.reviewed_at_field) or now_iso(),
            "rejection_reason": None if approved else reason,
            "updated_at": now_iso(),
        }
        updated = await self.identities.update_by_id(record["user_id"], patch)
        if updated is None:
            raise NotFoundError("User not found", user_id=record["user_id"])


class UserVerificationService:
    """Registration requests and their review."""

    def __init__(
        self,
        requests: Optional[VerificationRequestStore] = None,
        identities: Optional[IdentityStore] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.config = config or get_config()
        self.requests = requests or VerificationRequestStore()
        self.identities = identities or IdentityStore()
        self.workflow = VerificationWorkflow(self.requests, self.identities, self.config)

    async def create_request(self, profile: Union[CandidateProfile, dict]) -> VerificationRequest:
        """
        Create a pending identity and its verification request.

        The identity is removed again if the request cannot be stored.

        Raises:
            DuplicateIdentityError: If the email is already registered
        """
        profile = parse_input(CandidateProfile, profile)

        with audit(logger, "verification.create_request", record_type="verification_request") as fields:
            if await self.identities.find_by_email(profile.email):
                raise DuplicateIdentityError(
                    "User with this email already exists",
                    email=mask_email(profile.email),
                )

            now = now_iso()
            identity_id = new_id()
            fields["actor_id"] = identity_id
            await self.identities.insert({
                "id": identity_id,
                "email": profile.email,
                "password_hash": profile.password_hash,
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "role": profile.role.value,
                "is_active": True,
                "is_verified": False,
                "verification_status": ReviewStatus.PENDING.value,
                "verified_by": None,
                "verified_at": None,
                "rejection_reason": None,
                "phone_number": profile.phone_number,
                "description": profile.description,
                "position": profile.position,
                "rating": profile.rating,
                "profile_image": profile.profile_image,
                "created_at": now,
                "updated_at": now,
            })

            details = UserDetails(
                first_name=profile.first_name,
                last_name=profile.last_name,
                email=profile.email,
                phone_number=profile.phone_number,
                description=profile.description,
                position=profile.position,
                rating=profile.rating,
                profile_image=profile.profile_image,
            )
            request_id = new_id()
            try:
                row = await self.requests.insert({
                    "id": request_id,
                    "user_id": identity_id,
                    "status": ReviewStatus.PENDING.value,
                    "requested_at": now,
                    "reviewed_by": None,
                    "reviewed_at": None,
                    "review_notes": None,
                    "rejection_reason": None,
                    "user_details": details.model_dump(mode="json"),
                    "created_at": now,
                    "updated_at": now,
                })
            except DependencyUnavailableError:
                await self._discard_identity(identity_id)
                raise

            fields["record_id"] = request_id
            return VerificationRequest.model_validate(row)

    async def _discard_identity(self, identity_id: str) -> None:
        try:
            await self.identities.delete_by_id(identity_id)
        except DependencyUnavailableError as e:
            logger.error(
                "Failed to remove identity after request creation failed",
                exc_info=True,
                identity_id=identity_id,
                error=str(e),
            )

    async def approve(
        self,
        request_id: str,
        reviewer_id: str,
        notes: Optional[str] = None,
    ) -> VerificationRequest:
        row = await self.workflow.approve(request_id, reviewer_id, notes=notes)
        return VerificationRequest.model_validate(row)

    async def reject(
        self,
        request_id: str,
        reviewer_id: str,
        reason: Optional[str],
        notes: Optional[str] = None,
    ) -> VerificationRequest:
        row = await self.workflow.reject(request_id, reviewer_id, reason, notes=notes)
        return VerificationRequest.model_validate(row)

    async def bulk_approve(
        self,
        request_ids: list[str],
        reviewer_id: str,
        notes: Optional[str] = None,
    ) -> BulkResult:
        return await run_bulk(
            request_ids,
            lambda request_id: self.approve(request_id, reviewer_id, notes),
            logger,
            action="verification.bulk_approve",
        )

    async def bulk_reject(
        self,
        request_ids: list[str],
        reviewer_id: str,
        reason: Optional[str],
        notes: Optional[str] = None,
    ) -> BulkResult:
        return await run_bulk(
            request_ids,
            lambda request_id: self.reject(request_id, reviewer_id, reason, notes),
            logger,
            action="verification.bulk_reject",
        )

    async def get_request(self, request_id: str) -> VerificationRequest:
        row = await self.requests.find_by_id(request_id)
        if row is None:
            raise NotFoundError("Verification request not found", request_id=request_id)
        return VerificationRequest.model_validate(row)

    async def get_request_by_user(self, user_id: str) -> VerificationRequest:
        row = await self.requests.find_latest_by_user(user_id)
        if row is None:
            raise NotFoundError("Verification request not found", user_id=user_id)
        return VerificationRequest.model_validate(row)

    async def list_requests(self, params: Optional[QueryParams] = None) -> Page[VerificationRequest]:
        """List requests filtered by status, request date range and free text."""
        params = params or QueryParams()
        page, limit = clamp_pagination(params.page, params.limit, self.config)
        options = params.filters

        filters = Filters()
        if options.get("status"):
            filters.eq("status", coerce_enum(ReviewStatus, options["status"], "status"))
        if options.get("date_from"):
            filters.gte("requested_at", filter_timestamp(options["date_from"]))
        if options.get("date_to"):
            filters.lte("requested_at", filter_timestamp(options["date_to"]))

        expression = all_of(search_expression(self.requests.search_columns, params.search))
        if expression:
            filters.or_(expression)

        sort, desc = parse_sort(params.sort, "-requested_at")
        rows, total = await self.requests.find_page(filters, sort, desc, page, limit)
        items = [VerificationRequest.model_validate(row) for row in rows]
        return Page[VerificationRequest].build(items, total, page, limit)

    async def list_pending(self, page: int = 1, limit: int = 10) -> Page[VerificationRequest]:
        return await self.list_requests(
            QueryParams(page=page, limit=limit, filters={"status": ReviewStatus.PENDING.value})
        )

    @timed("verification.stats")
    async def stats(self) -> VerificationStats:
        """Queue counts, today's counts and the mean review turnaround."""
        midnight = local_midnight_iso()

        total = await self.requests.count()
        counts = {}
        for status in ReviewStatus:
            counts[status] = await self.requests.count(Filters().eq("status", status))

        pending_today = await self.requests.count(
            Filters().eq("status", ReviewStatus.PENDING).gte("requested_at", midnight)
        )
        approved_today = await self.requests.count(
            Filters().eq("status", ReviewStatus.APPROVED).gte("reviewed_at", midnight)
        )
        rejected_today = await self.requests.count(
            Filters().eq("status", ReviewStatus.REJECTED).gte("reviewed_at", midnight)
        )

        reviewed = await self.requests.select_rows(
            "requested_at,reviewed_at",
            Filters().in_("status", [ReviewStatus.APPROVED, ReviewStatus.REJECTED]),
        )
        durations = [
            (parse_iso(row["reviewed_at"]) - parse_iso(row["requested_at"])).total_seconds() / 3600
            for row in reviewed
            if row.get("reviewed_at") and row.get("requested_at")
        ]
        average = round_half_up(sum(durations) / len(durations), 2) if durations else 0.0

        return VerificationStats(
            total=total,
            pending=counts[ReviewStatus.PENDING],
            approved=counts[ReviewStatus.APPROVED],
            rejected=counts[ReviewStatus.REJECTED],
            pending_today=pending_today,
            approved_today=approved_today,
            rejected_today=rejected_today,
            average_processing_hours=average,
        )
