"""
Listing orchestration.

Creation is a two-step saga over resources that share no transaction:
1) save the uploaded file to blob storage
2) insert the listing + file rows in one Postgres transaction
If (2) fails, the blob from (1) is deleted (best-effort, bounded by its own
timeout). A cancelled request still waits for (2) to finish, so the blob is
only removed when the transaction really did not commit.

Reads are cache-aside: the per-requester page key is checked first, Postgres
is queried on a miss, ownership flags are filled in, and the page is written
back to the cache without ever failing the request.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from core.storage import FileMissingError

from . import cache as listing_cache
from .errors import (
    InternalError,
    InvalidFilterError,
    ListingAlreadyExistsError,
    ListingNotFoundError,
    StorageFailedError,
    UniqueConstraintError,
    ValidationFailedError,
)
from .models import FileMeta, Listing, ListingDraft, ListingFile, ListingFilter, ListingList, Requester
from .validation import validate_draft

logger = logging.getLogger(__name__)

DEFAULT_COMPENSATION_TIMEOUT_S = 5.0


class BlobStore(Protocol):
    async def save(self, file_id: str, name: str, reader: Any) -> str: ...

    async def load(self, path: str) -> AsyncIterator[bytes]: ...

    async def delete(self, path: str) -> None: ...


class ListingStore(Protocol):
    async def insert_listing_and_file(self, listing: Listing) -> None: ...

    async def filtered_listings(
        self, limit: int, offset: int, listing_filter: ListingFilter | None
    ) -> list[Listing]: ...

    async def get_listing(self, listing_id: str) -> Listing | None: ...

    async def delete_listing(self, listing_id: str, *, owner_id: str) -> bool: ...


class PageCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def _settle(task: asyncio.Future[Any]) -> asyncio.CancelledError | None:
    """
    Wait until `task` is done without propagating its result. Returns the
    CancelledError raised in the waiting task, if it was cancelled meanwhile.
    """
    cancelled: asyncio.CancelledError | None = None
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError as exc:
            cancelled = exc
    return cancelled


def _mark_ownership(listings: list[Listing], requester: Requester | None) -> None:
    for listing in listings:
        listing.requester_is_owner = requester is not None and listing.owner_id == requester.id


class ListingService:
    def __init__(
        self,
        *,
        repository: ListingStore,
        storage: BlobStore,
        cache: PageCache,
        compensation_timeout_s: float = DEFAULT_COMPENSATION_TIMEOUT_S,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._cache = cache
        self._compensation_timeout_s = compensation_timeout_s
        self._compensations: set[asyncio.Task[None]] = set()

    async def create_listing(
        self,
        requester: Requester,
        draft: ListingDraft,
        file_meta: FileMeta,
        reader: Any,
    ) -> Listing:
        validate_draft(draft)
        if requester is None or not requester.id:
            raise ValidationFailedError("requester", "requester identity is required")

        listing_id = _new_id()
        file_id = _new_id()

        try:
            path = await self._storage.save(file_id, file_meta.name, reader)
        except Exception as exc:
            logger.error(
                "listing_file_save_failed listing_id=%s file_id=%s error=%s",
                listing_id,
                file_id,
                exc,
            )
            raise StorageFailedError("failed to store listing file") from exc

        listing = Listing(
            id=listing_id,
            owner_id=requester.id,
            owner_login=requester.login,
            title=draft.title,
            body=draft.body,
            price=draft.price,
            created_at=_utc_now(),
            file=ListingFile(
                id=file_id,
                listing_id=listing_id,
                name=file_meta.name,
                mime=file_meta.mime,
                path=path,
            ),
        )

        # The insert runs to a known outcome even if the caller is cancelled
        # meanwhile: a commit can land while the connection is being released.
        insert = asyncio.ensure_future(self._repository.insert_listing_and_file(listing))
        caller_cancelled = await _settle(insert)

        if insert.cancelled():
            await self._compensate(listing, reason="cancelled")
            raise caller_cancelled or asyncio.CancelledError()

        failure = insert.exception()
        if failure is not None:
            if isinstance(failure, UniqueConstraintError):
                logger.warning(
                    "listing_insert_conflict listing_id=%s constraint=%s",
                    listing_id,
                    failure.constraint,
                )
                await self._compensate(listing, reason="conflict")
                error: Exception = ListingAlreadyExistsError("listing already exists")
            else:
                logger.error("listing_insert_failed listing_id=%s error=%s", listing_id, failure)
                await self._compensate(listing, reason="insert_failed")
                error = InternalError("failed to create listing")
            if caller_cancelled is not None:
                raise caller_cancelled from failure
            raise error from failure

        logger.info(
            "listing_created listing_id=%s file_id=%s owner_id=%s",
            listing.id,
            listing.file.id,
            listing.owner_id,
        )
        if caller_cancelled is not None:
            raise caller_cancelled

        listing.requester_is_owner = True
        return listing

    async def _compensate(self, listing: Listing, *, reason: str) -> None:
        """
        Delete the blob saved for a listing whose insert failed.

        Runs as its own task behind `asyncio.shield`, so cancelling the caller
        does not cancel the delete. Never raises anything but cancellation.
        """
        task = asyncio.ensure_future(self._delete_blob(listing, reason=reason))
        self._compensations.add(task)
        task.add_done_callback(self._compensations.discard)
        await asyncio.shield(task)

    async def _delete_blob(self, listing: Listing, *, reason: str) -> None:
        path = listing.file.path
        try:
            await asyncio.wait_for(self._storage.delete(path), timeout=self._compensation_timeout_s)
        except Exception:
            logger.exception(
                "listing_compensation_failed listing_id=%s path=%s reason=%s",
                listing.id,
                path,
                reason,
            )
            return
        logger.info(
            "listing_compensated listing_id=%s path=%s reason=%s",
            listing.id,
            path,
            reason,
        )

    async def filtered_listings(
        self,
        limit: int,
        offset: int,
        listing_filter: ListingFilter | None,
        requester: Requester | None = None,
    ) -> list[Listing]:
        key = listing_cache.page_key(limit, offset, listing_filter, requester)

        cached: str | None = None
        try:
            cached = await self._cache.get(key)
        except Exception as exc:
            logger.warning("listings_cache_get_failed key=%s error=%s", key, exc)

        if cached:
            try:
                listings = ListingList.validate_json(cached)
            except ValidationError as exc:
                logger.error("listings_cache_decode_failed key=%s", key)
                raise InternalError("failed to decode cached listings") from exc
            logger.debug("listings_cache_hit key=%s count=%s", key, len(listings))
            return listings

        try:
            listings = await self._repository.filtered_listings(limit, offset, listing_filter)
        except (ListingNotFoundError, InvalidFilterError):
            raise
        except Exception as exc:
            logger.error("listings_query_failed key=%s error=%s", key, exc)
            raise InternalError("failed to load listings") from exc

        _mark_ownership(listings, requester)

        try:
            await self._cache.set(key, ListingList.dump_json(listings).decode("utf-8"))
        except Exception as exc:
            logger.error("listings_cache_set_failed key=%s error=%s", key, exc)

        logger.debug("listings_loaded key=%s count=%s", key, len(listings))
        return listings

    async def get_listing(self, listing_id: str, requester: Requester | None = None) -> Listing:
        try:
            listing = await self._repository.get_listing(listing_id)
        except Exception as exc:
            logger.error("listing_get_failed listing_id=%s error=%s", listing_id, exc)
            raise InternalError("failed to load listing") from exc
        if listing is None:
            raise ListingNotFoundError("listing not found")
        _mark_ownership([listing], requester)
        return listing

    async def open_file(self, listing_id: str) -> tuple[ListingFile, AsyncIterator[bytes]]:
        listing = await self.get_listing(listing_id)
        try:
            chunks = await self._storage.load(listing.file.path)
        except FileMissingError as exc:
            logger.warning("listing_file_missing listing_id=%s path=%s", listing_id, listing.file.path)
            raise ListingNotFoundError("listing file not found") from exc
        except Exception as exc:
            logger.error(
                "listing_file_open_failed listing_id=%s path=%s error=%s",
                listing_id,
                listing.file.path,
                exc,
            )
            raise InternalError("failed to open listing file") from exc
        return listing.file, chunks

    async def delete_listing(self, requester: Requester, listing_id: str) -> None:
        """
        Remove a listing owned by `requester`. The stored file is left in
        place, and cached pages keep showing the listing until they expire.
        """
        try:
            deleted = await self._repository.delete_listing(listing_id, owner_id=requester.id)
        except Exception as exc:
            logger.error("listing_delete_failed listing_id=%s error=%s", listing_id, exc)
            raise InternalError("failed to delete listing") from exc
        if not deleted:
            raise ListingNotFoundError("listing not found")
        logger.info("listing_deleted listing_id=%s owner_id=%s", listing_id, requester.id)
