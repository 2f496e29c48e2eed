"""
Listing API schemas (response models).

Storage locations and owner ids stay internal; clients see the owner login
and a download URL for the file.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .models import Listing


class ListingResponse(BaseModel):
    id: str
    title: str
    body: str
    price: int
    owner_login: str
    created_at: datetime
    file_url: str
    file_name: str
    file_mime: str
    is_owner: bool


class ListingPageResponse(BaseModel):
    listings: list[ListingResponse]
    count: int
    limit: int
    offset: int


def to_response(listing: Listing) -> ListingResponse:
    return ListingResponse(
        id=listing.id,
        title=listing.title,
        body=listing.body,
        price=listing.price,
        owner_login=listing.owner_login,
        created_at=listing.created_at,
        file_url=f"/listings/{listing.id}/file",
        file_name=listing.file.name,
        file_mime=listing.file.mime,
        is_owner=listing.requester_is_owner,
    )
