"""Tests for the lead lifecycle."""

import pytest
from freezegun import freeze_time

from src.models.common import QueryParams
from src.models.lead import LeadStatus
from src.services.lead_service import LeadService
from src.utils.config import WorkflowConfig
from src.utils.errors import NotFoundError, UnauthorizedError, ValidationFailedError
from tests.utils.assertions import assert_bulk_result
from tests.utils.factories import create_lead_data, create_lead_row


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_lead_scores_and_normalizes(lead_service, fake_supabase):
    lead = await lead_service.create_lead({"name": "Jane", "phone_number": "(555) 123-4567"})

    assert lead.phone_number == "5551234567"
    assert lead.lead_score == 25
    assert lead.status == LeadStatus.NEW
    assert fake_supabase.get("leads", lead.id)["lead_score"] == 25


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_lead_with_email_and_message(lead_service):
    lead = await lead_service.create_lead({
        "name": "Jane",
        "phone_number": "5551234567",
        "email": "Jane@Example.com",
        "message": "I am looking for a three bedroom home close to good schools and parks, ideally with a big yard.",
    })

    assert lead.email == "jane@example.com"
    # 25 + email 10 + message over 50 (10); the message is under 100 characters
    assert lead.lead_score == 45


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["123", "555-12", "1" * 16, ""])
async def test_create_lead_rejects_bad_phone(lead_service, phone):
    with pytest.raises(ValidationFailedError):
        await lead_service.create_lead({"name": "Jane", "phone_number": phone})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_lead_requires_name(lead_service):
    with pytest.raises(ValidationFailedError):
        await lead_service.create_lead({"name": "   ", "phone_number": "5551234567"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_contacted_always_stamps_last_contacted(lead_service, fake_supabase, agent):
    row = create_lead_row(assigned_to=agent["id"], last_contacted_at="2024-01-01T00:00:00+00:00")
    fake_supabase.seed("leads", row)

    with freeze_time("2024-12-09 12:00:00"):
        lead = await lead_service.update_status(row["id"], "contacted", agent["id"], "user")

    assert lead.status == LeadStatus.CONTACTED
    assert lead.last_contacted_at.isoformat() == "2024-12-09T12:00:00+00:00"

    with freeze_time("2024-12-10 09:30:00"):
        lead = await lead_service.update_status(row["id"], LeadStatus.CONTACTED, agent["id"], "user")
    assert lead.last_contacted_at.isoformat() == "2024-12-10T09:30:00+00:00"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_other_statuses_leave_last_contacted(lead_service, fake_supabase, admin):
    row = create_lead_row()
    fake_supabase.seed("leads", row)

    lead = await lead_service.update_status(row["id"], "qualified", admin["id"], "admin")

    assert lead.status == LeadStatus.QUALIFIED
    assert lead.last_contacted_at is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_status_authorization(lead_service, fake_supabase, agent, seed_identity):
    stranger = seed_identity()
    row = create_lead_row(assigned_to=agent["id"])
    fake_supabase.seed("leads", row)

    with pytest.raises(UnauthorizedError):
        await lead_service.update_status(row["id"], "qualified", stranger["id"], "user")
    with pytest.raises(UnauthorizedError):
        await lead_service.update_status(row["id"], "qualified", None, None)
    with pytest.raises(ValidationFailedError):
        await lead_service.update_status(row["id"], "lost", agent["id"], "user")
    with pytest.raises(NotFoundError):
        await lead_service.update_status("missing", "qualified", agent["id"], "admin")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_and_unassign(lead_service, fake_supabase, admin, agent):
    row = create_lead_row()
    fake_supabase.seed("leads", row)

    lead = await lead_service.assign(row["id"], agent["id"], admin["id"])
    assert lead.assigned_to == agent["id"]
    assert lead.assigned_by == admin["id"]
    assert lead.assigned_at is not None

    lead = await lead_service.unassign(row["id"], agent["id"], "user")
    assert lead.assigned_to is None
    assert lead.assigned_by is None
    assert lead.assigned_at is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_requires_existing_assignee(lead_service, fake_supabase, admin):
    row = create_lead_row()
    fake_supabase.seed("leads", row)

    with pytest.raises(NotFoundError):
        await lead_service.assign(row["id"], "ghost", admin["id"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_checks_assigner_role_when_given(lead_service, fake_supabase, agent):
    row = create_lead_row()
    fake_supabase.seed("leads", row)

    with pytest.raises(UnauthorizedError):
        await lead_service.assign(row["id"], agent["id"], agent["id"], assigner_role="user")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unassign_by_stranger_is_refused(lead_service, fake_supabase, agent, seed_identity):
    row = create_lead_row(assigned_to=agent["id"])
    fake_supabase.seed("leads", row)
    stranger = seed_identity()

    with pytest.raises(UnauthorizedError):
        await lead_service.unassign(row["id"], stranger["id"], "user")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_bulk_assign_partial_failure(lead_service, fake_supabase, admin, agent):
    rows = [create_lead_row(), create_lead_row()]
    fake_supabase.seed("leads", *rows)

    result = await lead_service.bulk_assign([rows[0]["id"], "missing", rows[1]["id"]], agent["id"], admin["id"])

    assert_bulk_result(result, succeeded=2, failed=1)
    assert result.errors[0].id == "missing"
    assert all(lead.assigned_to == agent["id"] for lead in result.succeeded)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_lead_fields(lead_service, fake_supabase, agent):
    row = create_lead_row(assigned_to=agent["id"])
    fake_supabase.seed("leads", row)

    lead = await lead_service.update_lead(
        row["id"], {"notes": "Call after 5pm", "tags": ["hot"], "status": "contacted"}, agent["id"], "user"
    )

    assert lead.notes == "Call after 5pm"
    assert lead.last_contacted_at is not None
    # Score is only computed at creation by default
    assert lead.lead_score == row["lead_score"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_lead_rescores_when_enabled(lead_store, identity_store, fake_supabase, admin):
    service = LeadService(
        leads=lead_store,
        identities=identity_store,
        config=WorkflowConfig(environment="test", rescore_on_update=True),
    )
    row = create_lead_row(name="Jane", phone_number="5551234567", lead_score=25)
    fake_supabase.seed("leads", row)

    lead = await service.update_lead(row["id"], {"email": "jane@example.com"}, admin["id"], "admin")

    assert lead.lead_score == 35


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_lead_rejects_unknown_and_empty_fields(lead_service, fake_supabase, admin):
    row = create_lead_row()
    fake_supabase.seed("leads", row)

    with pytest.raises(ValidationFailedError):
        await lead_service.update_lead(row["id"], {"lead_score": 100}, admin["id"], "admin")
    with pytest.raises(ValidationFailedError):
        await lead_service.update_lead(row["id"], {}, admin["id"], "admin")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_leads_filters(lead_service, fake_supabase, agent):
    fake_supabase.seed(
        "leads",
        create_lead_row(name="Alice Buyer", status="new", assigned_to=agent["id"], lead_score=80),
        create_lead_row(name="Bob Seller", status="contacted", lead_score=40),
        create_lead_row(name="Carol Renter", status="new", source="referral", lead_score=10),
    )

    new = await lead_service.list_leads(QueryParams(filters={"status": "new"}))
    assert new.total == 2

    high = await lead_service.list_leads(QueryParams(filters={"min_score": 50}))
    assert [lead.name for lead in high.items] == ["Alice Buyer"]

    searched = await lead_service.list_leads(QueryParams(search="seller"))
    assert [lead.name for lead in searched.items] == ["Bob Seller"]

    mine = await lead_service.list_by_assignee(agent["id"])
    assert [lead.name for lead in mine.items] == ["Alice Buyer"]

    unassigned = await lead_service.list_unassigned(QueryParams(sort="lead_score"))
    assert [lead.name for lead in unassigned.items] == ["Carol Renter", "Bob Seller"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stats(lead_service, fake_supabase, agent):
    fake_supabase.seed(
        "leads",
        create_lead_row(status="converted", lead_score=90, assigned_to=agent["id"]),
        create_lead_row(status="new", lead_score=30, priority="high"),
        create_lead_row(status="contacted", lead_score=60, source="referral"),
    )

    stats = await lead_service.stats()

    assert stats.total == 3
    assert stats.by_status["converted"] == 1
    assert stats.unassigned == 2
    assert stats.by_source == {"landing_page": 2, "contact_form": 0, "referral": 1, "other": 0}
    assert stats.by_priority["high"] == 1
    assert stats.average_lead_score == 60
    assert stats.conversion_rate == 33


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stats_empty(lead_service):
    stats = await lead_service.stats()
    assert stats.total == 0
    assert stats.conversion_rate == 0
    assert stats.average_lead_score == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_conversion_rate_rounds_half_up(lead_service, fake_supabase):
    fake_supabase.seed(
        "leads",
        create_lead_row(status="converted", lead_score=10),
        *[create_lead_row(status="new", lead_score=11) for _ in range(7)],
    )

    stats = await lead_service.stats()

    assert stats.conversion_rate == 13


@pytest.mark.unit
@pytest.mark.asyncio
async def test_average_score_rounds_half_up(lead_service, fake_supabase):
    fake_supabase.seed("leads", create_lead_row(lead_score=10), create_lead_row(lead_score=11))

    stats = await lead_service.stats()

    assert stats.average_lead_score == 11


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_actor_role_is_unauthorized(lead_service, fake_supabase, agent, admin):
    row = create_lead_row(assigned_to=agent["id"])
    fake_supabase.seed("leads", row)

    with pytest.raises(UnauthorizedError):
        await lead_service.update_status(row["id"], "qualified", "someone-else", "agent")
    with pytest.raises(UnauthorizedError):
        await lead_service.unassign(row["id"], "someone-else", "agent")
    with pytest.raises(UnauthorizedError):
        await lead_service.assign(row["id"], agent["id"], admin["id"], assigner_role="manager")

    assert fake_supabase.get("leads", row["id"])["status"] == "new"
