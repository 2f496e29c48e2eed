"""
Listing persistence (raw SQL).

A listing row and its file row are always written in one transaction. Reads
join listings, their owners and their files, and map the flat row back into
a `Listing` with a nested `ListingFile`.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from . import query
from .errors import ListingNotFoundError, UniqueConstraintError
from .models import Listing, ListingFile, ListingFilter

SELECT_LISTINGS = """
SELECT
  l.id AS id,
  l.owner_id AS owner_id,
  u.login AS owner_login,
  l.title AS title,
  l.body AS body,
  l.price AS price,
  l.created_at AS created_at,
  f.id AS file_id,
  f.name AS file_name,
  f.mime AS file_mime,
  f.path AS file_path
FROM listings l
JOIN users u ON u.id = l.owner_id
JOIN listing_files f ON f.listing_id = l.id
"""


def row_to_listing(row: dict[str, Any]) -> Listing:
    listing_id = str(row["id"])
    return Listing(
        id=listing_id,
        owner_id=str(row["owner_id"]),
        owner_login=str(row["owner_login"]),
        title=str(row["title"]),
        body=str(row["body"]),
        price=int(row["price"]),
        created_at=row["created_at"],
        file=ListingFile(
            id=str(row["file_id"]),
            listing_id=listing_id,
            name=str(row["file_name"]),
            mime=str(row["file_mime"]),
            path=str(row["file_path"]),
        ),
    )


class ListingRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def insert_listing_and_file(self, listing: Listing) -> None:
        """
        Insert the listing and its file row atomically.

        Raises `UniqueConstraintError` when either insert hits a unique
        constraint; any other database error propagates unchanged.
        """
        try:
            async with self._pool.acquire() as conn:  # type: asyncpg.Connection
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO listings (id, owner_id, title, body, price, created_at)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        listing.id,
                        listing.owner_id,
                        listing.title,
                        listing.body,
                        listing.price,
                        listing.created_at,
                    )
                    await conn.execute(
                        """
                        INSERT INTO listing_files (id, listing_id, name, mime, path)
                        VALUES ($1, $2, $3, $4, $5)
                        """,
                        listing.file.id,
                        listing.id,
                        listing.file.name,
                        listing.file.mime,
                        listing.file.path,
                    )
        except asyncpg.UniqueViolationError as exc:
            raise UniqueConstraintError(getattr(exc, "constraint_name", None)) from exc

    async def filtered_listings(
        self,
        limit: int,
        offset: int,
        listing_filter: ListingFilter | None,
    ) -> list[Listing]:
        """
        One page of listings. An empty page is `ListingNotFoundError`;
        an unsupported sort order is `InvalidFilterError` (raised before
        any SQL runs).
        """
        tail, params = query.build_tail(limit, offset, listing_filter)
        rows = await self._pool.fetch(SELECT_LISTINGS + tail, *params)
        if not rows:
            raise ListingNotFoundError("no listings match the filter")
        return [row_to_listing(dict(row)) for row in rows]

    async def get_listing(self, listing_id: str) -> Listing | None:
        row = await self._pool.fetchrow(SELECT_LISTINGS + "WHERE l.id = $1", listing_id)
        return row_to_listing(dict(row)) if row is not None else None

    async def delete_listing(self, listing_id: str, *, owner_id: str) -> bool:
        """
        Delete a listing owned by `owner_id`; its file row goes with it
        (ON DELETE CASCADE). Returns False when nothing matched.
        """
        row = await self._pool.fetchrow(
            """
            DELETE FROM listings
            WHERE id = $1
              AND owner_id = $2
            RETURNING id
            """,
            listing_id,
            owner_id,
        )
        return row is not None
