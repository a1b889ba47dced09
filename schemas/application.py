from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

from core.enums import ApplicationStatus

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=256)]
RequiredAddress = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1024)]
OptionalText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=320)]
StorageReference = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1024)]
ClientId = Annotated[str, StringConstraints(pattern=r"^[A-Za-z0-9_-]{8,64}$")]


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, snake_case internally."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApplicationCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    owner_name: RequiredText
    business_name: RequiredText
    business_type: RequiredText
    address: RequiredAddress
    owner_email: Optional[OptionalText] = None
    owner_phone: Optional[OptionalText] = None
    # slot -> storage reference for documents uploaded before submission
    attachments: dict[str, StorageReference] = Field(default_factory=dict)
    # Caller-chosen id doubles as an idempotency key for retried submissions
    id: Optional[ClientId] = None


class ApplicationUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    owner_name: Optional[RequiredText] = None
    business_name: Optional[RequiredText] = None
    business_type: Optional[RequiredText] = None
    address: Optional[RequiredAddress] = None
    owner_email: Optional[OptionalText] = None
    owner_phone: Optional[OptionalText] = None

    @model_validator(mode="after")
    def check_not_empty(self) -> "ApplicationUpdate":
        if not self.changes():
            raise ValueError("At least one field must be provided")
        return self

    def changes(self) -> dict[str, str]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class StatusUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    status: ApplicationStatus


class AttachmentCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    reference: StorageReference


class ApplicationRecord(CamelModel):
    """Immutable snapshot of a stored application."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    owner_id: str
    owner_name: str
    business_name: str
    business_type: str
    address: str
    owner_email: Optional[str] = None
    owner_phone: Optional[str] = None
    attachments: dict[str, str] = Field(default_factory=dict)
    status: ApplicationStatus
    created_at: datetime
    updated_at: datetime


class ApplicationSummary(CamelModel):
    id: str
    status: ApplicationStatus
    created_at: datetime


class ApplicationFilter(CamelModel):
    status: Optional[ApplicationStatus] = None
    business_name: Optional[str] = None


class ApplicationPage(CamelModel):
    items: list[ApplicationRecord]
    next_cursor: Optional[str] = None


class ReviewResult(CamelModel):
    success: bool = True
