"""
Listing error taxonomy.

Routers translate these into HTTP responses; nothing below the router layer
raises `HTTPException`.
"""

from __future__ import annotations


class ListingError(RuntimeError):
    pass


class ValidationFailedError(ListingError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class StorageFailedError(ListingError):
    pass


class ListingAlreadyExistsError(ListingError):
    pass


class ListingNotFoundError(ListingError):
    pass


class InvalidFilterError(ListingError):
    pass


class InternalError(ListingError):
    pass


class UniqueConstraintError(RuntimeError):
    """
    Raised by the relational adapter for a unique violation (SQLSTATE 23505).
    """

    def __init__(self, constraint: str | None) -> None:
        super().__init__(f"unique constraint failed: {constraint or 'unknown'}")
        self.constraint = constraint
