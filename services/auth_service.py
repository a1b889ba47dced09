import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from core.enums import UserRole
from core.exceptions import UnauthorizedError
from core.security import create_access_token, get_password_hash, verify_password
from models.user import User
from repositories.user_repo import UserRepository
from schemas.user import TokenResponse, UserCredentials
from services.application_service import to_validation_error

logger = logging.getLogger(__name__)

# Checked against when the email is unknown so both paths cost one bcrypt round
_DUMMY_HASH = "$2b$12$C6UzMDM.H6dfI/f/IKcEeO9yyC/QWkyBq8ze2LjzPa9XKXWF5d6Gy"


def _credentials(data: Union[UserCredentials, Mapping[str, Any]]) -> UserCredentials:
    if isinstance(data, UserCredentials):
        return data
    try:
        return UserCredentials.model_validate(dict(data))
    except PydanticValidationError as e:
        raise to_validation_error(e.errors()) from e


class AuthService:
    """Registration and login. Passwords are only ever stored as bcrypt hashes."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def register(
        self, data: Union[UserCredentials, Mapping[str, Any]], role: UserRole = UserRole.USER
    ) -> User:
        creds = _credentials(data)
        user = await self.users.create(creds.email, get_password_hash(creds.password), role=role)
        logger.info("Registered %s account %s", role.value, user.id)
        return user

    async def login(self, data: Union[UserCredentials, Mapping[str, Any]]) -> TokenResponse:
        creds = _credentials(data)
        user = await self.users.get_by_email(creds.email)
        if user is None:
            verify_password(creds.password, _DUMMY_HASH)
            raise UnauthorizedError("Invalid credentials")
        if not verify_password(creds.password, user.hashed_password):
            logger.info("Failed login for account %s", user.id)
            raise UnauthorizedError("Invalid credentials")

        role = UserRole(user.role)
        return TokenResponse(access_token=create_access_token(user.id, role), role=role)

    async def commit(self) -> None:
        await self.users.commit()
