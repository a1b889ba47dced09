import logging
from datetime import datetime, timezone
from typing import Callable

from core.enums import ApplicationStatus, AttachmentSlot
from core.exceptions import ConflictError, InvalidSlotError, InvalidTransitionError
from repositories.application_repo import ApplicationRepository
from schemas.application import ApplicationRecord

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_slot(slot: str) -> AttachmentSlot:
    try:
        return AttachmentSlot(slot)
    except ValueError as e:
        raise InvalidSlotError(
            f"Unknown document slot '{slot}'. Expected one of: {', '.join(AttachmentSlot.names())}",
            fields=[slot],
        ) from e


class AttachmentTracker:
    """
    Records where an uploaded document lives. The upload itself happens
    elsewhere; this only stores the resulting reference, once per slot.
    """

    def __init__(self, repo: ApplicationRepository, clock: Callable[[], datetime] = _utcnow):
        self.repo = repo
        self.clock = clock

    async def attach(self, application_id: str, slot: str, reference: str) -> dict[str, str]:
        """Returns the application's attachments after the merge."""
        slot_name = validate_slot(slot).value
        record = await self.repo.get_by_id(application_id)
        return await self._attach_to(record, slot_name, reference)

    async def attach_to_record(self, record: ApplicationRecord, slot: str, reference: str) -> dict[str, str]:
        return await self._attach_to(record, validate_slot(slot).value, reference)

    async def _attach_to(self, record: ApplicationRecord, slot_name: str, reference: str) -> dict[str, str]:
        # Occupied slot wins over every other rule, whatever the status
        if slot_name in record.attachments:
            raise ConflictError(f"Attachment slot '{slot_name}' is already populated")
        if record.status is not ApplicationStatus.PENDING:
            raise InvalidTransitionError("Documents can only be attached while the application is Pending")

        await self.repo.add_attachment(record.id, slot_name, reference, self.clock())
        logger.info("Attached %s to application %s", slot_name, record.id)
        return {**record.attachments, slot_name: reference}
