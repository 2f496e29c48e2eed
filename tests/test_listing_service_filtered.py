"""Cache-aside retrieval of listing pages."""

import pytest

from core.storage import StorageError
from listings.cache import page_key
from listings.errors import InternalError, InvalidFilterError, ListingNotFoundError
from listings.models import FileMeta, ListingFilter, ListingList, Requester

FILTER = ListingFilter(sort_by="price", sort_order="asc")


def test_page_key_is_stable_and_partitioned(alice, bob) -> None:
    f = ListingFilter(min_price=10, max_price=50, sort_by="price", sort_order="desc")

    assert page_key(10, 20, f, alice) == "listings:owner-1:10:20:price:desc:10:50"
    assert page_key(10, 20, f, alice) == page_key(10, 20, ListingFilter(10, 50, "price", "desc"), alice)
    assert page_key(10, 20, f, None) == "listings:anon:10:20:price:desc:10:50"
    assert page_key(10, 20, f, alice) != page_key(10, 20, f, bob)
    assert page_key(10, 0, None, None) == "listings:anon:10:0:::0:0"


@pytest.mark.asyncio
async def test_miss_queries_store_enriches_and_populates_cache(service, seeded, page_cache, alice) -> None:
    listings = await service.filtered_listings(10, 0, FILTER, alice)

    assert [x.id for x in listings] == ["id-3", "id-1", "id-2", "id-0"]
    assert [x.requester_is_owner for x in listings] == [False, False, True, True]
    key = page_key(10, 0, FILTER, alice)
    assert page_cache.sets == [key]
    cached = ListingList.validate_json(page_cache.values[key])
    assert [(x.id, x.requester_is_owner) for x in cached] == [(x.id, x.requester_is_owner) for x in listings]


@pytest.mark.asyncio
async def test_hit_is_returned_verbatim_without_query(service, seeded, page_cache, alice) -> None:
    first = await service.filtered_listings(10, 0, FILTER, alice)
    queries = seeded.queries

    second = await service.filtered_listings(10, 0, FILTER, alice)

    assert seeded.queries == queries
    assert second == first


@pytest.mark.asyncio
async def test_repeated_reads_are_deterministic_with_or_without_cache(service, seeded, page_cache, bob) -> None:
    f = ListingFilter(min_price=100, max_price=200, sort_by="created_at", sort_order="asc")

    fresh = await service.filtered_listings(2, 1, f, bob)
    page_cache.values.clear()
    again = await service.filtered_listings(2, 1, f, bob)
    cached = await service.filtered_listings(2, 1, f, bob)

    assert [(x.id, x.requester_is_owner) for x in fresh] == [("id-2", False), ("id-3", True)]
    assert fresh == again == cached


@pytest.mark.asyncio
async def test_anonymous_requester_owns_nothing(service, seeded) -> None:
    listings = await service.filtered_listings(10, 0, None, None)

    assert len(listings) == 4
    assert not any(x.requester_is_owner for x in listings)


@pytest.mark.asyncio
async def test_cache_get_error_falls_back_to_store(service, seeded, page_cache, alice) -> None:
    page_cache.get_error = ConnectionError("redis down")

    listings = await service.filtered_listings(10, 0, FILTER, alice)

    assert len(listings) == 4
    assert seeded.queries == 1


@pytest.mark.asyncio
async def test_empty_cached_value_is_a_miss(service, seeded, page_cache, alice) -> None:
    page_cache.values[page_key(10, 0, FILTER, alice)] = ""

    listings = await service.filtered_listings(10, 0, FILTER, alice)

    assert len(listings) == 4
    assert seeded.queries == 1


@pytest.mark.asyncio
async def test_cache_set_error_does_not_change_result(service, seeded, page_cache, alice) -> None:
    expected = await service.filtered_listings(10, 0, FILTER, alice)
    page_cache.values.clear()
    page_cache.set_error = ConnectionError("redis down")

    listings = await service.filtered_listings(10, 0, FILTER, alice)

    assert listings == expected
    assert page_cache.values == {}


@pytest.mark.asyncio
async def test_corrupt_cached_page_is_internal(service, seeded, page_cache, alice) -> None:
    page_cache.values[page_key(10, 0, FILTER, alice)] = "{not json"

    with pytest.raises(InternalError):
        await service.filtered_listings(10, 0, FILTER, alice)


@pytest.mark.asyncio
async def test_not_found_propagates_and_is_not_cached(service, seeded, page_cache) -> None:
    with pytest.raises(ListingNotFoundError):
        await service.filtered_listings(10, 0, ListingFilter(min_price=1_000_000), None)

    assert page_cache.values == {}


@pytest.mark.asyncio
async def test_invalid_filter_propagates(service, seeded) -> None:
    with pytest.raises(InvalidFilterError):
        await service.filtered_listings(10, 0, ListingFilter(sort_by="price", sort_order="unknown"), None)


@pytest.mark.asyncio
async def test_store_failure_is_internal(service, repository) -> None:
    repository.query_error = ConnectionError("postgres down")

    with pytest.raises(InternalError):
        await service.filtered_listings(10, 0, None, None)


@pytest.mark.asyncio
async def test_get_listing_sets_ownership(service, seeded) -> None:
    listing = await service.get_listing("id-0", Requester(id="owner-1", login="alice"))

    assert listing.requester_is_owner is True
    with pytest.raises(ListingNotFoundError):
        await service.get_listing("missing")


@pytest.mark.asyncio
async def test_delete_listing_is_owner_scoped(service, seeded, storage, alice, bob) -> None:
    with pytest.raises(ListingNotFoundError):
        await service.delete_listing(bob, "id-0")

    await service.delete_listing(alice, "id-0")

    assert "id-0" not in seeded.rows
    assert storage.deleted == []


@pytest.mark.asyncio
async def test_open_file_streams_stored_bytes(service, storage, alice, draft, jpeg) -> None:
    created = await service.create_listing(alice, draft, FileMeta(name="bike.jpg", mime="image/jpeg"), jpeg)

    listing_file, chunks = await service.open_file(created.id)

    assert listing_file.mime == "image/jpeg"
    assert b"".join([chunk async for chunk in chunks]) == storage.files[created.file.path]


@pytest.mark.asyncio
async def test_open_file_missing_blob_is_not_found(service, seeded) -> None:
    with pytest.raises(ListingNotFoundError):
        await service.open_file("id-0")


@pytest.mark.asyncio
async def test_open_file_storage_failure_is_internal(service, seeded, storage) -> None:
    storage.load_error = StorageError("permission denied")

    with pytest.raises(InternalError) as info:
        await service.open_file("id-0")

    assert not isinstance(info.value, ListingNotFoundError)
