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
from schemas.user import TokenResponse, UserCredentials, UserResponse

__all__ = [
    "ApplicationCreate",
    "ApplicationFilter",
    "ApplicationPage",
    "ApplicationRecord",
    "ApplicationSummary",
    "ApplicationUpdate",
    "AttachmentCreate",
    "ReviewResult",
    "StatusUpdate",
    "TokenResponse",
    "UserCredentials",
    "UserResponse",
]
