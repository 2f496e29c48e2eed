"""
Listing API endpoints.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from auth import dependencies as auth_dependencies
from core import config

from . import schemas
from .errors import (
    InvalidFilterError,
    ListingAlreadyExistsError,
    ListingError,
    ListingNotFoundError,
    ValidationFailedError,
)
from .models import FileMeta, Listing, ListingDraft, ListingFilter, Requester
from .service import ListingService

router = APIRouter()

ALLOWED_CONTENT_TYPES = {"image/jpeg"}
JPEG_MAGIC = b"\xff\xd8\xff"


def get_listing_service(request: Request) -> ListingService:
    return request.app.state.listing_service


def _requester(user: dict | None) -> Requester | None:
    if user is None:
        return None
    return Requester(id=str(user["id"]), login=str(user["login"]))


def _http_error(exc: ListingError) -> HTTPException:
    if isinstance(exc, ValidationFailedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, InvalidFilterError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filter.")
    if isinstance(exc, ListingAlreadyExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Listing already exists.")
    if isinstance(exc, ListingNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found.")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error.")


async def _validate_upload(file: UploadFile) -> FileMeta:
    """
    Accept JPEG images only, checked on both the declared type and the
    leading bytes, since `content_type` is client-controlled.
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing filename.")

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type '{content_type}'. Allowed: {sorted(ALLOWED_CONTENT_TYPES)}",
        )

    max_bytes = config.max_upload_bytes()
    if file.size is not None and file.size > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Max is {max_bytes} bytes.",
        )

    head = await file.read(len(JPEG_MAGIC))
    await file.seek(0)
    if head != JPEG_MAGIC:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="File content is not a JPEG image.",
        )

    return FileMeta(name=file.filename, mime=content_type)


@dataclass(frozen=True)
class PageQuery:
    limit: int
    offset: int
    listing_filter: ListingFilter


def page_query(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    min_price: int = Query(0, ge=0),
    max_price: int = Query(0, ge=0),
    sort_by: str = Query("", max_length=32),
    sort_order: str = Query("", max_length=8),
) -> PageQuery:
    return PageQuery(
        limit=limit,
        offset=offset,
        listing_filter=ListingFilter(
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by.strip().lower(),
            sort_order=sort_order.strip().lower(),
        ),
    )


async def load_page(
    page: PageQuery = Depends(page_query),
    current_user: dict | None = Depends(auth_dependencies.get_optional_user),
    listing_service: ListingService = Depends(get_listing_service),
) -> list[Listing]:
    """
    One page of listings. An empty page is a normal result, not a 404.
    """
    try:
        return await listing_service.filtered_listings(
            page.limit,
            page.offset,
            page.listing_filter,
            _requester(current_user),
        )
    except ListingNotFoundError:
        return []
    except ListingError as exc:
        raise _http_error(exc) from exc


@router.post("/listings", status_code=status.HTTP_201_CREATED)
async def create_listing(
    title: str = Form(...),
    body: str = Form(...),
    price: int = Form(...),
    file: UploadFile = File(...),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    listing_service: ListingService = Depends(get_listing_service),
) -> dict:
    file_meta = await _validate_upload(file)
    try:
        listing = await listing_service.create_listing(
            _requester(current_user),
            ListingDraft(title=title, body=body, price=price),
            file_meta,
            file,
        )
    except ListingError as exc:
        raise _http_error(exc) from exc
    return {"listing": schemas.to_response(listing)}


@router.get("/listings")
async def list_listings(
    page: PageQuery = Depends(page_query),
    listings: list[Listing] = Depends(load_page),
) -> schemas.ListingPageResponse:
    return schemas.ListingPageResponse(
        listings=[schemas.to_response(listing) for listing in listings],
        count=len(listings),
        limit=page.limit,
        offset=page.offset,
    )


@router.head("/listings")
async def count_listings(listings: list[Listing] = Depends(load_page)) -> Response:
    return Response(headers={"X-Listings-Count": str(len(listings))})


@router.get("/listings/{listing_id}")
async def get_listing(
    listing_id: uuid.UUID,
    current_user: dict | None = Depends(auth_dependencies.get_optional_user),
    listing_service: ListingService = Depends(get_listing_service),
) -> dict:
    try:
        listing = await listing_service.get_listing(str(listing_id), _requester(current_user))
    except ListingError as exc:
        raise _http_error(exc) from exc
    return {"listing": schemas.to_response(listing)}


@router.get("/listings/{listing_id}/file")
async def download_listing_file(
    listing_id: uuid.UUID,
    listing_service: ListingService = Depends(get_listing_service),
) -> StreamingResponse:
    try:
        listing_file, chunks = await listing_service.open_file(str(listing_id))
    except ListingError as exc:
        raise _http_error(exc) from exc
    return StreamingResponse(chunks, media_type=listing_file.mime)


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: uuid.UUID,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    listing_service: ListingService = Depends(get_listing_service),
) -> dict:
    try:
        await listing_service.delete_listing(_requester(current_user), str(listing_id))
    except ListingError as exc:
        raise _http_error(exc) from exc
    return {"ok": True, "listing_id": str(listing_id)}
