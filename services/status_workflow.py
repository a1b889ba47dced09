"""
Status state machine for permit applications.

Pending is the only non-terminal state; it may move to Approved or Rejected
and nothing may move anywhere else. Transitions are applied with a
compare-and-swap against the status observed at read time: if another
reviewer got there first the loser gets ConflictError and nothing is
overwritten. There are no implicit retries.
"""
from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Callable, Optional

from core.enums import ApplicationStatus
from core.exceptions import ConflictError, InvalidTransitionError
from core.identity import Actor
from repositories.application_repo import ApplicationRepository
from schemas.application import ApplicationRecord
from services import access_guard
from utils.locks import KeyedLock

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def is_allowed(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: ApplicationStatus, target: ApplicationStatus) -> None:
    if not is_allowed(current, target):
        raise InvalidTransitionError(f"Cannot move an application from {current.value} to {target.value}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusWorkflow:
    def __init__(
        self,
        repo: ApplicationRepository,
        clock: Callable[[], datetime] = _utcnow,
        locks: Optional[KeyedLock] = None,
    ):
        self.repo = repo
        self.clock = clock
        # Only needed when the backing store cannot do conditional writes atomically
        self.locks = locks

    async def transition(self, actor: Actor, application_id: str, target: ApplicationStatus) -> ApplicationRecord:
        guard = self.locks.hold(application_id) if self.locks is not None else nullcontext()
        async with guard:
            record = await self.repo.get_by_id(application_id)
            access_guard.ensure_can_read(actor, record)
            access_guard.ensure_can_transition(actor)
            validate_transition(record.status, target)

            updated_at = max(self.clock(), record.created_at)
            swapped = await self.repo.compare_and_swap_status(
                application_id, expected=record.status, new=target, updated_at=updated_at
            )
            if swapped and self.locks is not None:
                # Without atomic conditional writes the lock must cover the commit too
                await self.repo.commit()
        if not swapped:
            logger.warning(
                "Lost status race on application %s (%s -> %s)", application_id, record.status.value, target.value
            )
            raise ConflictError("Application was modified by another reviewer; reload and try again")

        logger.info(
            "Application %s moved %s -> %s by %s", application_id, record.status.value, target.value, actor.id
        )
        return record.model_copy(update={"status": target, "updated_at": updated_at})
