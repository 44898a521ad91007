"""
Listing service - property records, their approval workflow and images.

Visibility of listings depends on the viewer:

* top-tier viewers see pending and approved listings, or one approval bucket
  when they filter on it explicitly;
* everyone else sees every approved listing plus their own pending or
  rejected ones; anonymous viewers only see approved listings.

The rule is a single PostgREST ``or`` expression so that one predicate drives
both the page and its total count.
"""

from typing import Any, Optional, Union

from src.models.common import BulkResult, Page, QueryParams, ReviewStatus, Role
from src.models.listing import (
    Listing,
    ListingInput,
    ListingStats,
    ListingStatus,
    ListingUpdate,
    PropertyFor,
    PropertyType,
    UploadedFile,
)
from src.services.blob_storage import BlobStorage
from src.services.review_workflow import (
    ReviewWorkflow,
    clamp_pagination,
    coerce_enum,
    is_owner_or_at_least,
    require,
    run_bulk,
)
from src.services.stores import IdentityStore, ListingStore
from src.utils.clock import now_iso
from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import NotFoundError, StorageError, ValidationFailedError
from src.utils.ids import new_id
from src.utils.logging import audit, get_structured_logger, timed
from src.utils.query import (
    Filters,
    all_of,
    clean_search_term,
    filter_identifier,
    parse_sort,
    round_half_up,
    search_expression,
)
from src.utils.validation import parse_input

logger = get_structured_logger(__name__)

IMAGE_FOLDER = "properties"


def build_visibility_expression(
    viewer_role: Any = None,
    viewer_id: Optional[str] = None,
    approval_filter: Any = None,
) -> str:
    """PostgREST ``or`` expression selecting the listings a viewer may see."""
    role = Role.coerce(viewer_role)
    if role == Role.top():
        if approval_filter:
            status = coerce_enum(ReviewStatus, approval_filter, "approval_status")
            return f"approval_status.eq.{status.value}"
        return "approval_status.in.(pending,approved)"
    if viewer_id:
        viewer_id = filter_identifier(viewer_id, "viewer_id")
        return (
            "approval_status.eq.approved,"
            f"and(agent_id.eq.{viewer_id},approval_status.in.(pending,rejected))"
        )
    return "approval_status.eq.approved"


def is_visible(row: dict, viewer_role: Any = None, viewer_id: Optional[str] = None) -> bool:
    """Single-record form of the visibility rule; top-tier viewers see any bucket."""
    role = Role.coerce(viewer_role)
    if role == Role.top():
        return True
    if row.get("approval_status") == ReviewStatus.APPROVED.value:
        return True
    return bool(viewer_id) and row.get("agent_id") == viewer_id


def can_update(actor_id: Optional[str], actor_role: Any, agent_id: Optional[str]) -> bool:
    """Agent or top tier. Admins may delete but not edit."""
    return is_owner_or_at_least(actor_id, actor_role, agent_id, Role.top())


def can_delete(actor_id: Optional[str], actor_role: Any, agent_id: Optional[str]) -> bool:
    return is_owner_or_at_least(actor_id, actor_role, agent_id, Role.ADMIN)


def can_manage_images(actor_id: Optional[str], actor_role: Any, agent_id: Optional[str]) -> bool:
    return is_owner_or_at_least(actor_id, actor_role, agent_id, Role.ADMIN)


class ListingApprovalWorkflow(ReviewWorkflow):
    record_type = "listing"
    record_label = "Property"
    status_field = "approval_status"
    reviewer_field = "approved_by"
    reviewed_at_field = "approved_at"


class ListingService:
    """Listings, their approval and their images."""

    def __init__(
        self,
        listings: Optional[ListingStore] = None,
        identities: Optional[IdentityStore] = None,
        storage: Optional[BlobStorage] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.config = config or get_config()
        self.listings = listings or ListingStore()
        self.identities = identities or IdentityStore()
        self._storage = storage
        self.workflow = ListingApprovalWorkflow(self.listings, self.config, logger)

    @property
    def storage(self) -> BlobStorage:
        if self._storage is None:
            self._storage = BlobStorage(config=self.config)
        return self._storage

    def _present(self, row: dict, viewer_id: Optional[str], viewer_role: Any) -> Listing:
        listing = Listing.model_validate(row)
        if listing.owner is not None and not can_delete(viewer_id, viewer_role, listing.agent_id):
            listing = listing.model_copy(update={"owner": None})
        return listing

    async def _load(self, listing_id: str) -> dict:
        row = await self.listings.find_by_id(listing_id)
        if row is None:
            raise NotFoundError("Property not found", listing_id=listing_id)
        return row

    def _check_image_count(self, count: int) -> None:
        if count > self.config.max_listing_images:
            raise ValidationFailedError(
                f"A property cannot have more than {self.config.max_listing_images} images",
                count=count,
            )

    async def create_listing(
        self,
        data: Union[ListingInput, dict],
        actor_id: str,
        actor_role: Any,
    ) -> Listing:
        """
        Create a listing owned by ``actor_id``.

        Listings created by the top tier are approved on creation with the
        creator as approver; all others start pending.
        """
        listing = parse_input(ListingInput, data)
        self._check_image_count(len(listing.images))
        role = Role.coerce(actor_role)

        with audit(logger, "listing.create", actor_id=actor_id, record_type="listing") as fields:
            if await self.identities.find_by_id(actor_id) is None:
                raise NotFoundError("Agent not found", agent_id=actor_id)

            now = now_iso()
            auto_approved = role == Role.top()
            listing_id = new_id()
            row = await self.listings.insert({
                "id": listing_id,
                **listing.model_dump(mode="json"),
                "agent_id": actor_id,
                "approval_status": (ReviewStatus.APPROVED if auto_approved else ReviewStatus.PENDING).value,
                "approved_by": actor_id if auto_approved else None,
                "approved_at": now if auto_approved else None,
                "rejection_reason": None,
                "created_at": now,
                "updated_at": now,
            })
            fields["record_id"] = listing_id
            fields["auto_approved"] = auto_approved
            return Listing.model_validate(row)

    async def get_listing(
        self,
        listing_id: str,
        viewer_id: Optional[str] = None,
        viewer_role: Any = None,
    ) -> Listing:
        row = await self.listings.find_by_id(listing_id)
        if row is None or not is_visible(row, viewer_role, viewer_id):
            raise NotFoundError("Property not found", listing_id=listing_id)
        return self._present(row, viewer_id, viewer_role)

    async def list_listings(
        self,
        params: Optional[QueryParams] = None,
        viewer_id: Optional[str] = None,
        viewer_role: Any = None,
    ) -> Page[Listing]:
        """List the listings visible to the viewer."""
        params = params or QueryParams()
        page, limit = clamp_pagination(params.page, params.limit, self.config)
        options = params.filters

        filters = self._build_filters(options)
        visibility = build_visibility_expression(viewer_role, viewer_id, options.get("approval_status"))
        search = search_expression(self.listings.search_columns, params.search)
        filters.or_(all_of(visibility, search))

        sort, desc = parse_sort(params.sort, "-created_at")
        rows, total = await self.listings.find_page(filters, sort, desc, page, limit)
        items = [self._present(row, viewer_id, viewer_role) for row in rows]
        return Page[Listing].build(items, total, page, limit)

    def _build_filters(self, options: dict) -> Filters:
        filters = Filters()
        if options.get("property_type"):
            filters.eq("property_type", coerce_enum(PropertyType, options["property_type"], "property_type"))
        if options.get("property_for"):
            filters.eq("property_for", coerce_enum(PropertyFor, options["property_for"], "property_for"))
        if options.get("status"):
            filters.eq("status", coerce_enum(ListingStatus, options["status"], "status"))
        if options.get("agent_id"):
            filters.eq("agent_id", options["agent_id"])
        if options.get("min_price") is not None:
            filters.gte("price", float(options["min_price"]))
        if options.get("max_price") is not None:
            filters.lte("price", float(options["max_price"]))
        if options.get("bedrooms") is not None:
            filters.gte("bedrooms", int(options["bedrooms"]))
        if options.get("bathrooms") is not None:
            filters.gte("bathrooms", float(options["bathrooms"]))
        for key in ("city", "state"):
            term = clean_search_term(options.get(key))
            if term:
                filters.ilike("location", f"%{term}%")
        return filters

    async def list_by_agent(
        self,
        agent_id: str,
        params: Optional[QueryParams] = None,
        viewer_id: Optional[str] = None,
        viewer_role: Any = None,
    ) -> Page[Listing]:
        params = params or QueryParams()
        scoped = params.model_copy(update={"filters": {**params.filters, "agent_id": agent_id}})
        return await self.list_listings(scoped, viewer_id, viewer_role)

    async def list_pending(self, params: Optional[QueryParams] = None) -> Page[Listing]:
        """Approval queue, oldest first."""
        params = params or QueryParams()
        page, limit = clamp_pagination(params.page, params.limit, self.config)
        filters = Filters().eq("approval_status", ReviewStatus.PENDING)
        sort, desc = parse_sort(params.sort, "created_at")
        rows, total = await self.listings.find_page(filters, sort, desc, page, limit)
        return Page[Listing].build([Listing.model_validate(r) for r in rows], total, page, limit)

    async def update_listing(
        self,
        listing_id: str,
        patch: Union[ListingUpdate, dict],
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Listing:
        update = parse_input(ListingUpdate, patch)
        changes = update.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationFailedError("No fields to update", listing_id=listing_id)

        with audit(logger, "listing.update", actor_id=actor_id, record_type="listing",
                   record_id=listing_id, fields_changed=sorted(changes)):
            row = await self._load(listing_id)
            require(
                can_update(actor_id, actor_role, row.get("agent_id")),
                "Not authorized to update this property",
                listing_id=listing_id,
            )
            changes["updated_at"] = now_iso()
            updated = await self.listings.update_by_id(listing_id, changes)
            if updated is None:
                raise NotFoundError("Property not found", listing_id=listing_id)
            return Listing.model_validate(updated)

    async def delete_listing(self, listing_id: str, actor_id: Optional[str], actor_role: Any) -> None:
        """Delete a listing, then remove its images from storage."""
        with audit(logger, "listing.delete", actor_id=actor_id, record_type="listing", record_id=listing_id):
            row = await self._load(listing_id)
            require(
                can_delete(actor_id, actor_role, row.get("agent_id")),
                "Not authorized to delete this property",
                listing_id=listing_id,
            )
            if not await self.listings.delete_by_id(listing_id):
                raise NotFoundError("Property not found", listing_id=listing_id)

        for url in row.get("images") or []:
            try:
                await self.storage.delete(url)
            except StorageError as e:
                logger.warning("Failed to delete listing image", listing_id=listing_id, url=url, error=str(e))

    async def approve(self, listing_id: str, admin_id: str) -> Listing:
        return Listing.model_validate(await self.workflow.approve(listing_id, admin_id))

    async def reject(self, listing_id: str, admin_id: str, reason: Optional[str]) -> Listing:
        return Listing.model_validate(await self.workflow.reject(listing_id, admin_id, reason))

    async def bulk_approve(self, listing_ids: list[str], admin_id: str) -> BulkResult:
        return await run_bulk(
            listing_ids,
            lambda listing_id: self.approve(listing_id, admin_id),
            logger,
            action="listing.bulk_approve",
        )

    async def bulk_reject(self, listing_ids: list[str], admin_id: str, reason: Optional[str]) -> BulkResult:
        return await run_bulk(
            listing_ids,
            lambda listing_id: self.reject(listing_id, admin_id, reason),
            logger,
            action="listing.bulk_reject",
        )

    async def attach_images(
        self,
        listing_id: str,
        files: list[UploadedFile],
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Listing:
        """Validate and upload files, then append their URLs to the listing."""
        if not files:
            raise ValidationFailedError("No files provided", listing_id=listing_id)

        with audit(logger, "listing.attach_images", actor_id=actor_id, record_type="listing",
                   record_id=listing_id, count=len(files)):
            row = await self._load(listing_id)
            require(
                can_manage_images(actor_id, actor_role, row.get("agent_id")),
                "Not authorized to manage images for this property",
                listing_id=listing_id,
            )
            current = list(row.get("images") or [])
            self._check_image_count(len(current) + len(files))
            for file in files:
                self.storage.validate_file(file.content_type, file.size)

            uploaded = []
            try:
                for file in files:
                    uploaded.append(
                        await self.storage.upload(file.data, file.filename, IMAGE_FOLDER, file.content_type)
                    )
                updated = await self.listings.update_by_id(
                    listing_id, {"images": current + uploaded, "updated_at": now_iso()}
                )
            except Exception:
                await self._discard_uploads(listing_id, uploaded)
                raise
            if updated is None:
                await self._discard_uploads(listing_id, uploaded)
                raise NotFoundError("Property not found", listing_id=listing_id)
            return Listing.model_validate(updated)

    async def _discard_uploads(self, listing_id: str, urls: list[str]) -> None:
        for url in urls:
            try:
                await self.storage.delete(url)
            except StorageError as e:
                logger.warning("Failed to remove orphaned upload", listing_id=listing_id, url=url, error=str(e))

    async def detach_image(
        self,
        listing_id: str,
        image_url: str,
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Listing:
        """Remove one image URL from the listing and delete the stored object."""
        with audit(logger, "listing.detach_image", actor_id=actor_id, record_type="listing",
                   record_id=listing_id):
            row = await self._load(listing_id)
            require(
                can_manage_images(actor_id, actor_role, row.get("agent_id")),
                "Not authorized to manage images for this property",
                listing_id=listing_id,
            )
            images = list(row.get("images") or [])
            if image_url not in images:
                raise NotFoundError("Image not found on this property", listing_id=listing_id)

            images.remove(image_url)
            updated = await self.listings.update_by_id(listing_id, {"images": images, "updated_at": now_iso()})
            if updated is None:
                raise NotFoundError("Property not found", listing_id=listing_id)
            try:
                await self.storage.delete(image_url)
            except StorageError as e:
                logger.warning("Failed to delete listing image", listing_id=listing_id, url=image_url, error=str(e))
            return Listing.model_validate(updated)

    async def replace_images(
        self,
        listing_id: str,
        image_urls: list[str],
        actor_id: Optional[str],
        actor_role: Any,
    ) -> Listing:
        """Set the ordered image list, e.g. after reordering."""
        self._check_image_count(len(image_urls))

        with audit(logger, "listing.replace_images", actor_id=actor_id, record_type="listing",
                   record_id=listing_id, count=len(image_urls)):
            row = await self._load(listing_id)
            require(
                can_manage_images(actor_id, actor_role, row.get("agent_id")),
                "Not authorized to manage images for this property",
                listing_id=listing_id,
            )
            updated = await self.listings.update_by_id(
                listing_id, {"images": list(image_urls), "updated_at": now_iso()}
            )
            if updated is None:
                raise NotFoundError("Property not found", listing_id=listing_id)
            return Listing.model_validate(updated)

    @timed("listing.stats")
    async def stats(self) -> ListingStats:
        total = await self.listings.count()

        by_status = {}
        for status in ListingStatus:
            by_status[status.value] = await self.listings.count(Filters().eq("status", status))

        by_approval_status = {}
        for status in ReviewStatus:
            by_approval_status[status.value] = await self.listings.count(Filters().eq("approval_status", status))

        by_type = {}
        for property_type in PropertyType:
            by_type[property_type.value] = await self.listings.count(Filters().eq("property_type", property_type))

        prices = [row.get("price") or 0 for row in await self.listings.select_rows("price")]
        average_price = round_half_up(sum(prices) / len(prices)) if prices else 0

        return ListingStats(
            total=total,
            by_status=by_status,
            by_approval_status=by_approval_status,
            by_type=by_type,
            average_price=average_price,
        )
