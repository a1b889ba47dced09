from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.exceptions import UnauthorizedError
from core.identity import Actor
from core.security import decode_access_token
from database import get_db
from repositories import ApplicationRepository, UserRepository
from services.application_service import ApplicationService
from services.auth_service import AuthService
from utils.locks import KeyedLock

# Missing credentials are reported through UnauthorizedError, not FastAPI's default 403
security = HTTPBearer(auto_error=False)

_transition_locks = KeyedLock()


def get_transition_locks() -> Optional[KeyedLock]:
    return _transition_locks if settings.serialize_transitions else None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """Resolve the bearer token into the Actor passed to every service call."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")
    return decode_access_token(credentials.credentials)


async def get_application_service(db: AsyncSession = Depends(get_db)) -> ApplicationService:
    return ApplicationService(
        ApplicationRepository(db),
        UserRepository(db),
        locks=get_transition_locks(),
    )


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(UserRepository(db))
