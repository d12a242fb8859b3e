"""Domain error type shared by every desktop service."""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the response envelope."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_PARENT = "INVALID_PARENT"
    LIMIT_REACHED = "LIMIT_REACHED"
    DUPLICATE = "DUPLICATE"
    SERVER_ERROR = "SERVER_ERROR"


STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_PARENT: 400,
    ErrorCode.LIMIT_REACHED: 400,
    ErrorCode.DUPLICATE: 409,
    ErrorCode.SERVER_ERROR: 500,
}


class DeskError(Exception):
    """Raised when a desktop operation is rejected.

    Every structural and ownership check raises this before any write
    happens, so a caught DeskError means nothing was changed.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        """Initialize desktop error.

        Args:
            code: Error code surfaced to the caller.
            message: Human-readable description, safe to return to clients.
        """
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        """HTTP status matching the error code."""
        return STATUS_BY_CODE[self.code]

    def __repr__(self) -> str:
        return f"DeskError({self.code.value}, {self.message!r})"
