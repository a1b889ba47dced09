from typing import Sequence


class PermitError(Exception):
    """Base exception"""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code)


class ValidationError(PermitError):
    """Missing or malformed input"""

    code = "validation_error"

    def __init__(self, message: str = "", fields: Sequence[str] = ()):
        super().__init__(message)
        self.fields = list(fields)


class InvalidSlotError(ValidationError):
    """Attachment slot is not one of the recognized document slots"""

    code = "invalid_slot"


class UnauthorizedError(PermitError):
    """Missing or invalid identity"""

    code = "unauthorized"


class ForbiddenError(PermitError):
    """Authenticated but not permitted"""

    code = "forbidden"


class NotFoundError(PermitError):
    """No such record"""

    code = "not_found"


class InvalidTransitionError(PermitError):
    """Status transition not allowed by the workflow"""

    code = "invalid_transition"


class ConflictError(PermitError):
    """Concurrent modification or duplicate write"""

    code = "conflict"


class StorageError(PermitError):
    """Backing store unreachable or erroring"""

    code = "storage_error"

    def __init__(self, message: str = "", retryable: bool = False):
        super().__init__(message)
        # Only set for reads issued before the unit of work wrote anything
        self.retryable = retryable
