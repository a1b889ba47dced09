"""
Orchestrates the application lifecycle: validation, identity assignment,
persistence, access checks, review and attachments.

Every entry point takes the calling Actor explicitly; nothing here looks up
identity from ambient state.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config import settings
from core.enums import ApplicationStatus
from core.exceptions import ConflictError, UnauthorizedError, ValidationError
from core.identity import Actor
from repositories.application_repo import ApplicationRepository
from repositories.user_repo import UserRepository
from schemas.application import (
    ApplicationCreate,
    ApplicationFilter,
    ApplicationPage,
    ApplicationRecord,
    ApplicationSummary,
    ApplicationUpdate,
)
from services import access_guard
from services.attachment_tracker import AttachmentTracker, validate_slot
from services.status_workflow import StatusWorkflow
from utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def _is_missing(err: Mapping[str, Any]) -> bool:
    if err["type"] == "missing":
        return True
    return err["type"] == "string_too_short" and not str(err.get("input", "")).strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _matches(record: ApplicationRecord, filters: ApplicationFilter) -> bool:
    if filters.status is not None and record.status is not filters.status:
        return False
    if filters.business_name and filters.business_name.lower() not in record.business_name.lower():
        return False
    return True


def to_validation_error(errors: Iterable[Mapping[str, Any]]) -> ValidationError:
    """Collapse pydantic error dicts into one ValidationError naming every offending field."""
    missing: list[str] = []
    unknown: list[str] = []
    invalid: list[str] = []
    for err in errors:
        field = ".".join(str(p) for p in err.get("loc", ())) or "body"
        if _is_missing(err):
            missing.append(field)
        elif err["type"] == "extra_forbidden":
            unknown.append(field)
        else:
            invalid.append(field)

    parts = []
    if missing:
        parts.append(f"Missing or empty required field(s): {', '.join(missing)}")
    if unknown:
        parts.append(f"Unknown field(s): {', '.join(unknown)}")
    if invalid:
        parts.append(f"Invalid value for field(s): {', '.join(invalid)}")
    return ValidationError("; ".join(parts), fields=missing + unknown + invalid)


def _parse(model: type[BaseModel], data: Union[BaseModel, Mapping[str, Any]]) -> Any:
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be an object", fields=["body"])
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        raise to_validation_error(e.errors()) from e


def _parse_decision(decision: Union[str, ApplicationStatus]) -> ApplicationStatus:
    try:
        return ApplicationStatus(decision)
    except ValueError as e:
        raise ValidationError(
            f"Decision must be one of: {ApplicationStatus.APPROVED.value}, {ApplicationStatus.REJECTED.value}",
            fields=["status"],
        ) from e


class ApplicationService:
    def __init__(
        self,
        repo: ApplicationRepository,
        users: UserRepository,
        clock: Callable[[], datetime] = _utcnow,
        locks: Optional[KeyedLock] = None,
    ):
        self.repo = repo
        self.users = users
        self.clock = clock
        self.workflow = StatusWorkflow(repo, clock=clock, locks=locks)
        self.attachments = AttachmentTracker(repo, clock=clock)

    async def submit(
        self, actor: Actor, fields: Union[ApplicationCreate, Mapping[str, Any]]
    ) -> ApplicationSummary:
        """
        Validate and store a new Pending application owned by the actor.
        Optional initial attachments are recorded in the same unit of work.
        """
        body: ApplicationCreate = _parse(ApplicationCreate, fields)
        for slot in body.attachments:
            validate_slot(slot)

        if await self.users.get_by_id(actor.id) is None:
            raise UnauthorizedError("Unknown user")

        now = self.clock()
        record = ApplicationRecord(
            id=body.id or str(uuid.uuid4()),
            owner_id=actor.id,
            owner_name=body.owner_name,
            business_name=body.business_name,
            business_type=body.business_type,
            address=body.address,
            owner_email=body.owner_email,
            owner_phone=body.owner_phone,
            status=ApplicationStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        created = await self.repo.create(record)
        for slot, reference in body.attachments.items():
            attachments = await self.attachments.attach_to_record(created, slot, reference)
            created = created.model_copy(update={"attachments": attachments})

        logger.info("Application %s submitted by %s", created.id, actor.id)
        return ApplicationSummary(id=created.id, status=created.status, created_at=created.created_at)

    async def get(self, actor: Actor, application_id: str) -> ApplicationRecord:
        record = await self.repo.get_by_id(application_id)
        access_guard.ensure_can_read(actor, record)
        return record

    async def list_mine(
        self, actor: Actor, filters: Optional[ApplicationFilter] = None
    ) -> list[ApplicationRecord]:
        """The actor's own applications, newest first. Owner listings are small and unpaginated."""
        records = await self.repo.list_by_owner(actor.id)
        if filters is None:
            return records
        return [r for r in records if _matches(r, filters)]

    async def list_for_review(
        self,
        actor: Actor,
        filters: Optional[ApplicationFilter] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        owner_id: Optional[str] = None,
    ) -> ApplicationPage:
        access_guard.ensure_admin(actor)
        if limit is None:
            limit = settings.default_page_size
        if limit < 1:
            raise ValidationError("Page size must be at least 1", fields=["limit"])
        limit = min(limit, settings.max_page_size)
        return await self.repo.list_all(filters, cursor=cursor, limit=limit, owner_id=owner_id)

    async def status_summary(self, actor: Actor) -> dict[str, int]:
        access_guard.ensure_admin(actor)
        return await self.repo.count_by_status()

    async def review(
        self, actor: Actor, application_id: str, decision: Union[str, ApplicationStatus]
    ) -> ApplicationRecord:
        target = _parse_decision(decision)
        access_guard.ensure_can_transition(actor)
        return await self.workflow.transition(actor, application_id, target)

    async def update_fields(
        self, actor: Actor, application_id: str, changes: Union[ApplicationUpdate, Mapping[str, Any]]
    ) -> ApplicationRecord:
        body: ApplicationUpdate = _parse(ApplicationUpdate, changes)
        record = await self.repo.get_by_id(application_id)
        access_guard.ensure_can_mutate_fields(actor, record)

        values = body.changes()
        if not await self.repo.update_fields_if_pending(application_id, values):
            raise ConflictError("Application was reviewed before the change could be saved")
        logger.info("Application %s fields updated by %s: %s", application_id, actor.id, sorted(values))
        return record.model_copy(update=values)

    async def attach(self, actor: Actor, application_id: str, slot: str, reference: str) -> dict[str, str]:
        slot_name = validate_slot(slot).value
        if not isinstance(reference, str) or not reference.strip():
            raise ValidationError("Missing or empty required field(s): reference", fields=["reference"])

        record = await self.repo.get_by_id(application_id)
        access_guard.ensure_owner(actor, record)
        return await self.attachments.attach_to_record(record, slot_name, reference.strip())

    async def commit(self) -> None:
        await self.repo.commit()
