"""
Listing domain types.

`Listing` and `ListingFile` are pydantic models because the same shape is
stored in the cache as JSON and read back verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, TypeAdapter


class ListingFile(BaseModel):
    id: str
    listing_id: str
    name: str
    mime: str
    path: str


class Listing(BaseModel):
    id: str
    owner_id: str
    owner_login: str
    title: str
    body: str
    price: int
    created_at: datetime
    file: ListingFile
    requester_is_owner: bool = False


ListingList = TypeAdapter(list[Listing])


@dataclass(frozen=True)
class Requester:
    id: str
    login: str


@dataclass(frozen=True)
class ListingDraft:
    title: str
    body: str
    price: int


@dataclass(frozen=True)
class FileMeta:
    name: str
    mime: str


@dataclass(frozen=True)
class ListingFilter:
    """
    Per-request filter. Sort values stay raw strings here; `query.resolve_sort`
    turns them into the closed `SortField`/`SortOrder` enums.
    """

    min_price: int = 0
    max_price: int = 0
    sort_by: str = ""
    sort_order: str = ""
