from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class AttachmentSlot(str, Enum):
    """Document categories an application may carry a storage reference for."""

    ID_DOCUMENT = "idDocument"
    LEASE_DOCUMENT = "leaseDocument"
    BARANGAY_CLEARANCE = "barangayClearance"

    @classmethod
    def names(cls) -> list[str]:
        return [slot.value for slot in cls]
