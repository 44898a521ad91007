"""Lead lifecycle - intake, assignment, status changes and statistics."""

from typing import Any, Optional, Union

from src.models.common import BulkResult, Page, QueryParams, Role
from src.models.lead import (
    Lead,
    LeadPriority,
    LeadSource,
    LeadStats,
    LeadStatus,
    LeadSubmission,
    LeadUpdate,
)
from src.services.lead_scoring import score_lead
from src.services.review_workflow import (
    clamp_pagination,
    coerce_enum,
    filter_timestamp,
    is_owner_or_at_least,
    require,
    run_bulk,
)
from src.services.stores import IdentityStore, LeadStore
from src.utils.clock import now_iso
from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import NotFoundError, ValidationFailedError
from src.utils.ids import new_id
from src.utils.logging import audit, get_structured_logger, sanitize_message_text, timed
from src.utils.query import Filters, parse_sort, round_half_up, search_expression
from src.utils.validation import parse_input

logger = get_structured_logger(__name__)

SCORING_FIELDS = {
    "name",
    "email",
    "message",
    "estimated_budget",
    "preferred_location",
    "property_interests",
    "tags",
}


class LeadService:
    """Inbound leads and their lifecycle."""

    def __init__(
        self,
        leads: Optional[LeadStore] = None,
        identities: Optional[IdentityStore] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.config = config or get_config()
        self.leads = leads or LeadStore()
        self.identities = identities or IdentityStore()

    async def create_lead(self, data: Union[LeadSubmission, dict]) -> Lead:
        """Store a new lead with its score computed from the submitted fields."""
        submission = parse_input(LeadSubmission, data)
        score = score_lead(submission, self.config.score_weights)

        with audit(logger, "lead.create", record_type="lead", source=submission.source.value) as fields:
            now = now_iso()
            lead_id = new_id()
            row = await self.leads.insert({
                "id": lead_id,
                **submission.model_dump(mode="json"),
                "status": LeadStatus.NEW.value,
                "assigned_to": None,
                "assigned_by": None,
                "assigned_at": None,
                "last_contacted_at": None,
                "lead_score": score,
                "conversion_probability": 0,
                "created_at": now,
                "updated_at": now,
            })
            fields["record_id"] = lead_id
            fields["lead_score"] = score

        logger.debug(
            "Lead message received",
            lead_id=lead_id,
            message_text=sanitize_message_text(submission.message or ""),
        )
        return Lead.model_validate(row)

    async def _load(self, lead_id: str) -> dict:
        row = await self.leads.find_by_id(lead_id)
        if row is None:
            raise NotFoundError("Lead not found", lead_id=lead_id)
        return row

    def _authorize(self, row: dict, actor_id: Optional[str], actor_role: Any, action: str) -> None:
        require(
            is_owner_or_at_least(actor_id, actor_role, row.get("assigned_to"), Role.ADMIN),
            f"Not authorized to {action} this lead",
            lead_id=row.get("id"),
            actor_id=actor_id,
        )

    async def get_lead(self, lead_id: str) -> Lead:
        return Lead.model_validate(await self._load(lead_id))

    async def list_leads(self, params: Optional[QueryParams] = None) -> Page[Lead]:
        """List leads with filters, free-text search and pagination."""
        params = params or QueryParams()
        page, limit = clamp_pagination(params.page, params.limit, self.config)
        filters = self._build_filters(params.filters)

        expression = search_expression(self.leads.search_columns, params.search)
        if expression:
            filters.or_(expression)

        sort, desc = parse_sort(params.sort, "-created_at")
        rows, total = await self.leads.find_page(filters, sort, desc, page, limit)
        return Page[Lead].build([Lead.model_validate(row) for row in rows], total, page, limit)

    def _build_filters(self, options: dict) -> Filters:
        filters = Filters()
        if options.get("status"):
            filters.eq("status", coerce_enum(LeadStatus, options["status"], "status"))
        if options.get("priority"):
            filters.eq("priority", coerce_enum(LeadPriority, options["priority"], "priority"))
        if options.get("source"):
            filters.eq("source", coerce_enum(LeadSource, options["source"], "source"))
        if options.get("assigned_to"):
            filters.eq("assigned_to", options["assigned_to"])
        elif options.get("unassigned"):
            filters.is_null("assigned_to")
        if options.get("min_score") is not None:
            filters.gte("lead_score", int(options["min_score"]))
        if options.get("max_score") is not None:
            filters.lte("lead_score", int(options["max_score"]))
        if options.get("date_from"):
            filters.gte("created_at", filter_timestamp(options["date_from"]))
        if options.get("date_to"):
            filters.lte("created_at", filter_timestamp(options["date_to"]))
        return filters

    async def list_by_assignee(self, assignee_id: str, params: Optional[QueryParams] = None) -> Page[Lead]:
        params = params or QueryParams()
        scoped = params.model_copy(update={"filters": {**params.filters, "assigned_to": assignee_id}})
        return await self.list_leads(scoped)

    async def list_unassigned(self, params: Optional[QueryParams] = None) -> Page[Lead]:
        params = params or QueryParams()
        options = {k: v for k, v in params.filters.items() if k != "assigned_to"}
        scoped = params.model_copy(update={"filters": {**options, "unassigned": True}})
        return await self.list_leads(scoped)

    async def update_lead(
        self,
        lead_id: str,
        patch: Union[LeadUpdate, dict],
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Lead:
        """Edit lead fields. Allowed to the assignee and admins."""
        update = parse_input(LeadUpdate, patch)
        changes = update.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationFailedError("No fields to update", lead_id=lead_id)

        with audit(logger, "lead.update", actor_id=actor_id, record_type="lead", record_id=lead_id,
                   fields_changed=sorted(changes)):
            row = await self._load(lead_id)
            self._authorize(row, actor_id, actor_role, "update")

            now = now_iso()
            if changes.get("status") == LeadStatus.CONTACTED.value:
                changes["last_contacted_at"] = now

            if self.config.rescore_on_update and SCORING_FIELDS & changes.keys():
                merged = Lead.model_validate({**row, **changes})
                changes["lead_score"] = score_lead(merged, self.config.score_weights)

            changes["updated_at"] = now
            updated = await self.leads.update_by_id(lead_id, changes)
            if updated is None:
                raise NotFoundError("Lead not found", lead_id=lead_id)
            return Lead.model_validate(updated)

    async def update_status(
        self,
        lead_id: str,
        status: Union[LeadStatus, str],
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Lead:
        """Change lead status; moving to contacted always stamps last_contacted_at."""
        status = coerce_enum(LeadStatus, status, "status")

        with audit(logger, "lead.update_status", actor_id=actor_id, record_type="lead",
                   record_id=lead_id, status=status.value):
            row = await self._load(lead_id)
            self._authorize(row, actor_id, actor_role, "update")

            now = now_iso()
            patch = {"status": status.value, "updated_at": now}
            if status == LeadStatus.CONTACTED:
                patch["last_contacted_at"] = now

            updated = await self.leads.update_by_id(lead_id, patch)
            if updated is None:
                raise NotFoundError("Lead not found", lead_id=lead_id)
            return Lead.model_validate(updated)

    async def assign(
        self,
        lead_id: str,
        assignee_id: str,
        assigner_id: str,
        assigner_role: Any = None,
    ) -> Lead:
        """
        Assign a lead to an identity.

        ``assigner_role`` is checked only when the caller supplies it.
        """
        with audit(logger, "lead.assign", actor_id=assigner_id, record_type="lead",
                   record_id=lead_id, assignee_id=assignee_id):
            if assigner_role is not None:
                role = Role.coerce(assigner_role)
                require(
                    role is not None and role.at_least(Role.ADMIN),
                    "Not authorized to assign leads",
                    actor_id=assigner_id,
                )

            if await self.identities.find_by_id(assignee_id) is None:
                raise NotFoundError("Assigned user not found", assignee_id=assignee_id)

            now = now_iso()
            updated = await self.leads.update_by_id(lead_id, {
                "assigned_to": assignee_id,
                "assigned_by": assigner_id,
                "assigned_at": now,
                "updated_at": now,
            })
            if updated is None:
                raise NotFoundError("Lead not found", lead_id=lead_id)
            return Lead.model_validate(updated)

    async def unassign(self, lead_id: str, actor_id: Optional[str], actor_role: Any) -> Lead:
        with audit(logger, "lead.unassign", actor_id=actor_id, record_type="lead", record_id=lead_id):
            row = await self._load(lead_id)
            self._authorize(row, actor_id, actor_role, "unassign")

            updated = await self.leads.update_by_id(lead_id, {
                "assigned_to": None,
                "assigned_by": None,
                "assigned_at": None,
                "updated_at": now_iso(),
            })
            if updated is None:
                raise NotFoundError("Lead not found", lead_id=lead_id)
            return Lead.model_validate(updated)

    async def bulk_assign(
        self,
        lead_ids: list[str],
        assignee_id: str,
        assigner_id: str,
        assigner_role: Any = None,
    ) -> BulkResult:
        return await run_bulk(
            lead_ids,
            lambda lead_id: self.assign(lead_id, assignee_id, assigner_id, assigner_role),
            logger,
            action="lead.bulk_assign",
        )

    @timed("lead.stats")
    async def stats(self) -> LeadStats:
        total = await self.leads.count()

        by_status = {}
        for status in LeadStatus:
            by_status[status.value] = await self.leads.count(Filters().eq("status", status))

        by_source = {}
        for source in LeadSource:
            by_source[source.value] = await self.leads.count(Filters().eq("source", source))

        by_priority = {}
        for priority in LeadPriority:
            by_priority[priority.value] = await self.leads.count(Filters().eq("priority", priority))

        unassigned = await self.leads.count(Filters().is_null("assigned_to"))

        scores = [row.get("lead_score") or 0 for row in await self.leads.select_rows("lead_score")]
        average_score = round_half_up(sum(scores) / len(scores)) if scores else 0

        converted = by_status[LeadStatus.CONVERTED.value]
        conversion_rate = round_half_up(100 * converted / total) if total else 0

        return LeadStats(
            total=total,
            by_status=by_status,
            unassigned=unassigned,
            by_source=by_source,
            by_priority=by_priority,
            average_lead_score=average_score,
            conversion_rate=conversion_rate,
        )
