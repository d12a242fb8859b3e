"""Desktop content tree: storage, schemas and domain errors."""

from deskspace.desktop.database import Database
from deskspace.desktop.errors import DeskError, ErrorCode

__all__ = [
    "Database",
    "DeskError",
    "ErrorCode",
]
