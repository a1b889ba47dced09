from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_application_service, get_current_actor
from core.enums import ApplicationStatus
from core.exceptions import ForbiddenError
from core.identity import Actor
from schemas.application import (
    ApplicationCreate,
    ApplicationFilter,
    ApplicationPage,
    ApplicationRecord,
    ApplicationSummary,
    ApplicationUpdate,
    AttachmentCreate,
    ReviewResult,
    StatusUpdate,
)
from services.application_service import ApplicationService

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.post("", response_model=ApplicationSummary, status_code=201)
async def submit_application(
    body: ApplicationCreate,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    summary = await service.submit(actor, body)
    await service.commit()
    return summary


@router.get("", response_model=ApplicationPage)
async def list_applications(
    owner: Optional[str] = None,
    all_: bool = Query(False, alias="all"),
    status: Optional[ApplicationStatus] = None,
    q: Optional[str] = Query(None, max_length=256, description="Business name contains (case-insensitive)"),
    cursor: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    """
    Admins get the review listing (everything, or one owner with ?owner=).
    Everyone else gets their own applications; asking for another owner is refused.
    """
    filters = ApplicationFilter(status=status, business_name=q)
    if actor.is_admin:
        owner_id = None if all_ else owner
        return await service.list_for_review(actor, filters, cursor=cursor, limit=limit, owner_id=owner_id)

    if all_ or (owner is not None and owner != actor.id):
        raise ForbiddenError("Only administrators may list other applicants' applications")
    return ApplicationPage(items=await service.list_mine(actor, filters), next_cursor=None)


@router.get("/summary", response_model=dict[str, int])
async def status_summary(
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.status_summary(actor)


@router.get("/{application_id}", response_model=ApplicationRecord)
async def get_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.get(actor, application_id)


@router.patch("/{application_id}", response_model=ApplicationRecord)
async def update_application(
    application_id: str,
    body: ApplicationUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    record = await service.update_fields(actor, application_id, body)
    await service.commit()
    return record


@router.patch("/{application_id}/status", response_model=ReviewResult)
async def review_application(
    application_id: str,
    body: StatusUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    await service.review(actor, application_id, body.status)
    await service.commit()
    return ReviewResult(success=True)


@router.post("/{application_id}/attachments/{slot}", response_model=dict[str, str])
async def attach_document(
    application_id: str,
    slot: str,
    body: AttachmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_application_service),
):
    """Record the storage reference of a document already uploaded to blob storage."""
    attachments = await service.attach(actor, application_id, slot, body.reference)
    await service.commit()
    return attachments
