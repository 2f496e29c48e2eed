"""
Listing page cache (cache-aside).

Keys are partitioned per requester because cached pages carry the
`requester_is_owner` flag computed for that requester. Nothing invalidates
these keys on writes; entries simply expire after the TTL.
"""

from __future__ import annotations

from core.cache import CacheClient

from .models import ListingFilter, Requester

KEY_PREFIX = "listings"
ANONYMOUS = "anon"


def page_key(
    limit: int,
    offset: int,
    listing_filter: ListingFilter | None,
    requester: Requester | None,
) -> str:
    f = listing_filter or ListingFilter()
    who = requester.id if requester is not None and requester.id else ANONYMOUS
    return ":".join(
        [
            KEY_PREFIX,
            who,
            str(limit),
            str(offset),
            f.sort_by,
            f.sort_order,
            str(f.min_price),
            str(f.max_price),
        ]
    )


class ListingCache:
    def __init__(self, cache: CacheClient, ttl_s: int) -> None:
        self._cache = cache
        self._ttl_s = ttl_s

    async def get(self, key: str) -> str | None:
        return await self._cache.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._cache.set(key, value, self._ttl_s)
