from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from config import settings
from core.enums import UserRole
from core.exceptions import UnauthorizedError
from core.identity import Actor


def create_access_token(user_id: str, role: UserRole, expires_delta: timedelta | None = None) -> str:
    """Create JWT access token carrying the user id (sub) and role claims"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: dict[str, Any] = {"sub": user_id, "role": role.value, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Actor:
    """Verify a bearer token and return the actor it identifies"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise UnauthorizedError("Invalid or expired token") from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthorizedError("Token is missing the subject claim")
    try:
        role = UserRole(payload.get("role"))
    except ValueError as e:
        raise UnauthorizedError("Token carries an unknown role") from e
    return Actor(id=user_id, role=role)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
