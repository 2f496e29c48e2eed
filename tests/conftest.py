"""
Shared fixtures: in-memory stand-ins for the blob store, the listing
repository and the page cache.
"""

from __future__ import annotations

import inspect
import io
from datetime import datetime, timedelta, timezone

import pytest

from core.storage import FileMissingError
from listings.errors import ListingNotFoundError, UniqueConstraintError
from listings.models import Listing, ListingDraft, ListingFile, ListingFilter, Requester
from listings.query import SortField, SortOrder, build_tail, resolve_sort
from listings.service import ListingService


class FakeStorage:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.saved: list[str] = []
        self.deleted: list[str] = []
        self.save_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.load_error: Exception | None = None

    async def save(self, file_id: str, name: str, reader) -> str:
        if self.save_error is not None:
            raise self.save_error
        path = f"/blobs/{file_id}-{name}"
        data = reader.read()
        if inspect.isawaitable(data):
            data = await data
        self.files[path] = data
        self.saved.append(path)
        return path

    async def load(self, path: str):
        if self.load_error is not None:
            raise self.load_error
        if path not in self.files:
            raise FileMissingError(f"file not found: {path}")
        data = self.files[path]

        async def chunks():
            yield data

        return chunks()

    async def delete(self, path: str) -> None:
        self.deleted.append(path)
        if self.delete_error is not None:
            raise self.delete_error
        self.files.pop(path, None)


class FakeRepository:
    """
    Applies the same filter/sort/pagination rules as the SQL tail, in Python.
    """

    def __init__(self) -> None:
        self.rows: dict[str, Listing] = {}
        self.insert_error: BaseException | None = None
        self.query_error: Exception | None = None
        self.inserted: list[Listing] = []
        self.queries = 0

    async def insert_listing_and_file(self, listing: Listing) -> None:
        if self.insert_error is not None:
            raise self.insert_error
        for row in self.rows.values():
            if row.owner_id == listing.owner_id and row.title == listing.title:
                raise UniqueConstraintError("listings_owner_title_key")
        stored = listing.model_copy(deep=True)
        stored.requester_is_owner = False
        self.rows[listing.id] = stored
        self.inserted.append(stored)

    async def filtered_listings(self, limit: int, offset: int, listing_filter: ListingFilter | None) -> list[Listing]:
        self.queries += 1
        if self.query_error is not None:
            raise self.query_error
        # Surfaces InvalidFilterError exactly like the SQL adapter does.
        build_tail(limit, offset, listing_filter)

        rows = list(self.rows.values())
        if listing_filter is not None:
            if listing_filter.min_price > 0:
                rows = [r for r in rows if r.price >= listing_filter.min_price]
            if listing_filter.max_price > 0:
                rows = [r for r in rows if r.price <= listing_filter.max_price]
            field, order = resolve_sort(listing_filter)
            rows.sort(key=lambda r: r.id)
            if field is SortField.PRICE:
                rows.sort(key=lambda r: r.created_at, reverse=True)
                rows.sort(key=lambda r: r.price, reverse=order is SortOrder.DESC)
            else:
                rows.sort(key=lambda r: r.created_at, reverse=order is SortOrder.DESC)

        page = rows[offset : offset + limit]
        if not page:
            raise ListingNotFoundError("no listings match the filter")
        return [r.model_copy(deep=True) for r in page]

    async def get_listing(self, listing_id: str) -> Listing | None:
        row = self.rows.get(listing_id)
        return row.model_copy(deep=True) if row is not None else None

    async def delete_listing(self, listing_id: str, *, owner_id: str) -> bool:
        row = self.rows.get(listing_id)
        if row is None or row.owner_id != owner_id:
            return False
        del self.rows[listing_id]
        return True


class FakeCache:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.get_error: Exception | None = None
        self.set_error: Exception | None = None
        self.sets: list[str] = []

    async def get(self, key: str) -> str | None:
        if self.get_error is not None:
            raise self.get_error
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.sets.append(key)
        if self.set_error is not None:
            raise self.set_error
        self.values[key] = value


def make_listing(
    listing_id: str,
    *,
    owner_id: str = "owner-1",
    owner_login: str = "alice",
    price: int = 100,
    created_at: datetime | None = None,
    title: str | None = None,
) -> Listing:
    return Listing(
        id=listing_id,
        owner_id=owner_id,
        owner_login=owner_login,
        title=title or f"Listing {listing_id}",
        body="A perfectly ordinary listing body.",
        price=price,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        file=ListingFile(
            id=f"file-{listing_id}",
            listing_id=listing_id,
            name="photo.jpg",
            mime="image/jpeg",
            path=f"/blobs/file-{listing_id}-photo.jpg",
        ),
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def page_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def service(repository, storage, page_cache) -> ListingService:
    return ListingService(
        repository=repository,
        storage=storage,
        cache=page_cache,
        compensation_timeout_s=1.0,
    )


@pytest.fixture
def alice() -> Requester:
    return Requester(id="owner-1", login="alice")


@pytest.fixture
def bob() -> Requester:
    return Requester(id="owner-2", login="bob")


@pytest.fixture
def draft() -> ListingDraft:
    return ListingDraft(title="Vintage bicycle", body="Steel frame, new tyres, rides well.", price=15000)


@pytest.fixture
def jpeg() -> io.BytesIO:
    return io.BytesIO(b"\xff\xd8\xff\xe0fake-jpeg-bytes")


@pytest.fixture
def seeded(repository) -> FakeRepository:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i, (price, owner) in enumerate([(300, "owner-1"), (100, "owner-2"), (200, "owner-1"), (100, "owner-2")]):
        listing = make_listing(
            f"id-{i}",
            owner_id=owner,
            owner_login="alice" if owner == "owner-1" else "bob",
            price=price,
            created_at=base + timedelta(days=i),
        )
        repository.rows[listing.id] = listing
    return repository
