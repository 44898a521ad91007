"""
Shared pending -> approved/rejected transition engine.

Verification requests and listings follow the same three-state review
pattern. A transition is one conditional update guarded on the record still
being pending, so of two racing reviewers only the first write lands; the
second finds nothing to update and is told the record was already processed.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from src.models.common import BulkItemError, BulkResult, ReviewStatus, Role
from src.services.supabase_client import SupabaseTable
from src.utils.clock import now_iso, to_iso
from src.utils.config import WorkflowConfig
from src.utils.errors import (
    AlreadyProcessedError,
    DependencyUnavailableError,
    EstateHubError,
    MissingReasonError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from src.utils.logging import StructuredLogger, audit

EnumT = TypeVar("EnumT", bound=Enum)


class ReviewWorkflow:
    """
    Transition engine for one reviewable table.

    Subclasses name the columns they use and may override ``after_transition``
    to apply side effects on linked records.
    """

    record_type: str = "record"
    record_label: str = "Record"
    status_field: str = "status"
    reviewer_field: str = "reviewed_by"
    reviewed_at_field: str = "reviewed_at"
    reason_field: str = "rejection_reason"
    notes_field: Optional[str] = None

    def __init__(self, store: SupabaseTable, config: WorkflowConfig, logger: StructuredLogger):
        self.store = store
        self.config = config
        self.logger = logger

    async def after_transition(
        self,
        record: dict,
        decision: ReviewStatus,
        reviewer_id: str,
        reason: Optional[str],
    ) -> None:
        """Side effects on linked records. Runs after the record has transitioned."""
        return None

    async def approve(self, record_id: str, reviewer_id: str, notes: Optional[str] = None) -> dict:
        notes = self._check_notes(notes)
        return await self.transition(record_id, ReviewStatus.APPROVED, reviewer_id, notes=notes)

    async def reject(
        self,
        record_id: str,
        reviewer_id: str,
        reason: Optional[str],
        notes: Optional[str] = None,
    ) -> dict:
        reason = (reason or "").strip()
        if not reason:
            raise MissingReasonError("Rejection reason is required", record_id=record_id)
        if len(reason) > self.config.max_rejection_reason_length:
            raise ValidationFailedError(
                f"Rejection reason cannot exceed {self.config.max_rejection_reason_length} characters",
                record_id=record_id,
            )
        notes = self._check_notes(notes)
        return await self.transition(record_id, ReviewStatus.REJECTED, reviewer_id, reason=reason, notes=notes)

    def _check_notes(self, notes: Optional[str]) -> Optional[str]:
        if notes is None:
            return None
        notes = notes.strip()
        if len(notes) > self.config.max_review_notes_length:
            raise ValidationFailedError(
                f"Review notes cannot exceed {self.config.max_review_notes_length} characters"
            )
        return notes or None

    def _transition_patch(
        self,
        decision: ReviewStatus,
        reviewer_id: str,
        reason: Optional[str],
        notes: Optional[str],
    ) -> dict:
        now = now_iso()
        patch = {
            self.status_field: decision.value,
            self.reviewer_field: reviewer_id,
            self.reviewed_at_field: now,
            self.reason_field: reason if decision == ReviewStatus.REJECTED else None,
            "updated_at": now,
        }
        if self.notes_field and notes is not None:
            patch[self.notes_field] = notes
        return patch

    async def transition(
        self,
        record_id: str,
        decision: ReviewStatus,
        reviewer_id: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Move a pending record to ``decision``. Returns the updated row."""
        action = f"{self.record_type}.{'approve' if decision == ReviewStatus.APPROVED else 'reject'}"
        with audit(
            self.logger,
            action,
            actor_id=reviewer_id,
            record_type=self.record_type,
            record_id=record_id,
        ):
            patch = self._transition_patch(decision, reviewer_id, reason, notes)
            updated = await self.store.update_where(
                record_id,
                {self.status_field: ReviewStatus.PENDING.value},
                patch,
            )
            if updated is None:
                await self._raise_missing_or_processed(record_id)

            try:
                await self.after_transition(updated, decision, reviewer_id, reason)
            except Exception as e:
                # The reviewed record is the source of truth: undo it so the
                # linked record is never left disagreeing with a terminal state.
                await self._compensate(record_id, decision, reviewer_id, e)
                if isinstance(e, EstateHubError):
                    raise
                raise DependencyUnavailableError(
                    f"Failed to apply {self.record_type} review side effects: {e}",
                    record_id=record_id,
                ) from e

            return updated

    async def _raise_missing_or_processed(self, record_id: str) -> None:
        existing = await self.store.find_by_id(record_id)
        if existing is None:
            raise NotFoundError(f"{self.record_label} not found", record_id=record_id)
        raise AlreadyProcessedError(
            f"{self.record_label} has already been {existing.get(self.status_field)}",
            record_id=record_id,
            status=existing.get(self.status_field),
        )

    async def _compensate(
        self,
        record_id: str,
        decision: ReviewStatus,
        reviewer_id: str,
        error: Exception,
    ) -> None:
        revert = {
            self.status_field: ReviewStatus.PENDING.value,
            self.reviewer_field: None,
            self.reviewed_at_field: None,
            self.reason_field: None,
            "updated_at": now_iso(),
        }
        if self.notes_field:
            revert[self.notes_field] = None
        try:
            await self.store.update_where(
                record_id,
                {self.status_field: decision.value, self.reviewer_field: reviewer_id},
                revert,
            )
            self.logger.warning(
                f"Reverted {self.record_type} to pending after side effect failure",
                record_type=self.record_type,
                record_id=record_id,
                error=str(error),
            )
        except Exception as revert_error:
            self.logger.error(
                f"Failed to revert {self.record_type} after side effect failure",
                exc_info=True,
                record_type=self.record_type,
                record_id=record_id,
                error=str(error),
                revert_error=str(revert_error),
            )


async def run_bulk(
    ids: Iterable[str],
    operation: Callable[[str], Awaitable[Any]],
    logger: StructuredLogger,
    action: str = "bulk",
) -> BulkResult:
    """
    Apply ``operation`` to each id in input order, one at a time.

    A failing item is recorded and the batch continues.
    """
    result = BulkResult()
    ids = list(ids)

    for record_id in ids:
        try:
            result.succeeded.append(await operation(record_id))
        except EstateHubError as e:
            result.errors.append(BulkItemError(id=record_id, error=e.message or str(e)))
        except Exception as e:
            logger.error(
                "Bulk item failed unexpectedly",
                exc_info=True,
                action=action,
                record_id=record_id,
                error=str(e),
            )
            result.errors.append(BulkItemError(id=record_id, error=str(e)))

    logger.info(
        f"{action} completed",
        action=action,
        requested=len(ids),
        succeeded=len(result.succeeded),
        failed=len(result.errors),
    )
    return result


def is_owner_or_at_least(
    actor_id: Optional[str],
    actor_role: Any,
    owner_id: Optional[str],
    minimum: Role,
) -> bool:
    """True when the actor owns the record or holds at least ``minimum``."""
    if actor_id and owner_id and actor_id == owner_id:
        return True
    role = Role.coerce(actor_role)
    return role is not None and role.at_least(minimum)


def require(allowed: bool, message: str, **context: Any) -> None:
    if not allowed:
        raise UnauthorizedError(message, **context)


def clamp_pagination(page: Optional[int], limit: Optional[int], config: WorkflowConfig) -> tuple[int, int]:
    """Apply pagination defaults and the configured page size ceiling."""
    page = page or config.pagination.default_page
    limit = limit or config.pagination.default_limit
    return max(page, 1), max(1, min(limit, config.pagination.max_limit))


def coerce_enum(enum_cls: type[EnumT], value: Any, field: str) -> EnumT:
    """Parse a filter value into an enum member, or fail validation."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailedError(
            f"Invalid {field}: {value}",
            details=[{"field": field, "message": f"must be one of: {allowed}"}],
        )


def filter_timestamp(value: Any) -> str:
    """Normalize a date-range filter bound to a stored timestamp string."""
    if hasattr(value, "isoformat"):
        return to_iso(value) if hasattr(value, "hour") else value.isoformat()
    return str(value)
