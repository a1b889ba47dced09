"""
Role and ownership rules for application records.

Owners see and edit only their own records; administrators see everything
and are the only actors allowed to change status. A non-owner, non-admin
reading someone else's record is told the record does not exist, so ids
cannot be probed.
"""
from core.enums import ApplicationStatus
from core.exceptions import ForbiddenError, NotFoundError
from core.identity import Actor
from schemas.application import ApplicationRecord


def can_read(actor: Actor, record: ApplicationRecord) -> bool:
    return actor.is_admin or actor.id == record.owner_id


def can_transition(actor: Actor) -> bool:
    return actor.is_admin


def can_mutate_fields(actor: Actor, record: ApplicationRecord) -> bool:
    return actor.id == record.owner_id and record.status is ApplicationStatus.PENDING


def ensure_can_read(actor: Actor, record: ApplicationRecord) -> None:
    if not can_read(actor, record):
        raise NotFoundError("Application not found")


def ensure_can_transition(actor: Actor) -> None:
    if not can_transition(actor):
        raise ForbiddenError("Only administrators may review applications")


def ensure_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Administrator access required")


def ensure_owner(actor: Actor, record: ApplicationRecord) -> None:
    """Hide the record from outsiders; refuse admins who do not own it."""
    ensure_can_read(actor, record)
    if actor.id != record.owner_id:
        raise ForbiddenError("Only the applicant may modify this application")


def ensure_can_mutate_fields(actor: Actor, record: ApplicationRecord) -> None:
    ensure_owner(actor, record)
    if not can_mutate_fields(actor, record):
        raise ForbiddenError("Application can no longer be edited")
