from dataclasses import dataclass

from core.enums import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, passed explicitly into every service call."""

    id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN
