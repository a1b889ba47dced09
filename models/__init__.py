from models.application import Application, ApplicationAttachment
from models.user import User

__all__ = [
    "Application",
    "ApplicationAttachment",
    "User",
]
