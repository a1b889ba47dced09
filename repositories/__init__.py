from repositories.application_repo import ApplicationRepository
from repositories.user_repo import UserRepository

__all__ = [
    "ApplicationRepository",
    "UserRepository",
]
