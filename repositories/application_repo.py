"""
Record store for permit applications.

Two access patterns dominate: owner-scoped listing (served by the
owner_id/created_at index) and the admin-wide listing (served by the
created_at/id and status/created_at indexes with keyset pagination). Every
method returns ApplicationRecord snapshots, never live ORM rows.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import ApplicationStatus
from core.exceptions import ConflictError, NotFoundError
from models import Application, ApplicationAttachment
from repositories.base import BaseRepository
from schemas.application import ApplicationFilter, ApplicationPage, ApplicationRecord
from utils.cursor import decode_cursor, encode_cursor
from utils.retry import retry_reads

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset(
    {"owner_name", "business_name", "business_type", "address", "owner_email", "owner_phone"}
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def _to_record(app: Application) -> ApplicationRecord:
    return ApplicationRecord(
        id=app.id,
        owner_id=app.owner_id,
        owner_name=app.owner_name,
        business_name=app.business_name,
        business_type=app.business_type,
        address=app.address,
        owner_email=app.owner_email,
        owner_phone=app.owner_phone,
        attachments={a.slot: a.reference for a in app.attachments},
        status=ApplicationStatus(app.status),
        created_at=_as_utc(app.created_at),
        updated_at=_as_utc(app.updated_at),
    )


def _name_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ApplicationRepository(BaseRepository):
    """Repository for Application records and their attachment slots."""

    def __init__(self, db: AsyncSession):
        super().__init__(db)

    def _select(self):
        # Conditional UPDATEs bypass the identity map, so always refresh loaded rows
        return select(Application).execution_options(populate_existing=True)

    async def create(self, record: ApplicationRecord) -> ApplicationRecord:
        """
        Persist a new application as Pending.
        Raises ConflictError when the id already exists, so a caller retrying with
        its own id cannot create a duplicate.
        """
        if await self._exists(record.id):
            raise ConflictError("An application with this id already exists")
        try:
            async with self._writing("application create"):
                await self.db.execute(
                    insert(Application).values(
                        id=record.id,
                        owner_id=record.owner_id,
                        owner_name=record.owner_name,
                        business_name=record.business_name,
                        business_type=record.business_type,
                        address=record.address,
                        owner_email=record.owner_email,
                        owner_phone=record.owner_phone,
                        status=ApplicationStatus.PENDING.value,
                        created_at=record.created_at,
                        updated_at=record.created_at,
                    )
                )
        except IntegrityError as e:
            raise ConflictError("An application with this id already exists") from e
        logger.info("Stored application %s for owner %s", record.id, record.owner_id)
        return record.model_copy(
            update={"status": ApplicationStatus.PENDING, "updated_at": record.created_at, "attachments": {}}
        )

    @retry_reads
    async def _exists(self, application_id: str) -> bool:
        async with self._reading("application existence check"):
            result = await self.db.execute(select(Application.id).where(Application.id == application_id))
            return result.scalar_one_or_none() is not None

    @retry_reads
    async def get_by_id(self, application_id: str) -> ApplicationRecord:
        async with self._reading("application lookup"):
            result = await self.db.execute(self._select().where(Application.id == application_id))
            app = result.scalar_one_or_none()
            if app is None:
                raise NotFoundError("Application not found")
            return _to_record(app)

    @retry_reads
    async def list_by_owner(self, owner_id: str) -> list[ApplicationRecord]:
        async with self._reading("owner listing"):
            result = await self.db.execute(
                self._select()
                .where(Application.owner_id == owner_id)
                .order_by(Application.created_at.desc(), Application.id.desc())
            )
            return [_to_record(a) for a in result.scalars().all()]

    @retry_reads
    async def list_all(
        self,
        filters: Optional[ApplicationFilter] = None,
        cursor: Optional[str] = None,
        limit: int = 25,
        owner_id: Optional[str] = None,
    ) -> ApplicationPage:
        """
        Admin-wide listing, newest first, with optional status / business name filters.
        Keyset pagination on (created_at, id): next_cursor is None on the last page.
        """
        conditions: list[Any] = []
        if owner_id is not None:
            conditions.append(Application.owner_id == owner_id)
        if filters is not None:
            if filters.status is not None:
                conditions.append(Application.status == filters.status.value)
            if filters.business_name:
                conditions.append(
                    func.lower(Application.business_name).like(_name_pattern(filters.business_name), escape="\\")
                )
        if cursor:
            after_created, after_id = decode_cursor(cursor)
            conditions.append(
                or_(
                    Application.created_at < after_created,
                    and_(Application.created_at == after_created, Application.id < after_id),
                )
            )

        stmt = (
            self._select()
            .where(*conditions)
            .order_by(Application.created_at.desc(), Application.id.desc())
            .limit(limit + 1)
        )
        async with self._reading("admin listing"):
            result = await self.db.execute(stmt)
            rows = list(result.scalars().all())

        has_more = len(rows) > limit
        items = [_to_record(a) for a in rows[:limit]]
        next_cursor = encode_cursor(items[-1].created_at, items[-1].id) if has_more and items else None
        return ApplicationPage(items=items, next_cursor=next_cursor)

    @retry_reads
    async def count_by_status(self) -> dict[str, int]:
        async with self._reading("status counts"):
            result = await self.db.execute(
                select(Application.status, func.count()).group_by(Application.status)
            )
            counts = {status.value: 0 for status in ApplicationStatus}
            for status, count in result.all():
                counts[status] = count
            return counts

    async def compare_and_swap_status(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        updated_at: datetime,
    ) -> bool:
        """Set status to `new` only if it is still `expected`. Single conditional UPDATE."""
        async with self._writing("status compare-and-swap"):
            result = await self.db.execute(
                update(Application)
                .where(Application.id == application_id, Application.status == expected.value)
                .values(status=new.value, updated_at=updated_at)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    async def update_fields_if_pending(self, application_id: str, changes: dict[str, Any]) -> bool:
        """Apply descriptive field changes only while the record is still Pending."""
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not mutable: {', '.join(sorted(unknown))}")
        async with self._writing("field update"):
            result = await self.db.execute(
                update(Application)
                .where(
                    Application.id == application_id,
                    Application.status == ApplicationStatus.PENDING.value,
                )
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    @retry_reads
    async def get_attachment(self, application_id: str, slot: str) -> Optional[str]:
        async with self._reading("attachment lookup"):
            result = await self.db.execute(
                select(ApplicationAttachment.reference).where(
                    ApplicationAttachment.application_id == application_id,
                    ApplicationAttachment.slot == slot,
                )
            )
            return result.scalar_one_or_none()

    async def add_attachment(
        self, application_id: str, slot: str, reference: str, attached_at: datetime
    ) -> None:
        """Record a storage reference for a slot; ConflictError if the slot is already populated."""
        try:
            async with self._writing("attachment insert"):
                await self.db.execute(
                    insert(ApplicationAttachment).values(
                        id=str(uuid.uuid4()),
                        application_id=application_id,
                        slot=slot,
                        reference=reference,
                        attached_at=attached_at,
                    )
                )
        except IntegrityError as e:
            raise ConflictError(f"Attachment slot '{slot}' is already populated") from e
