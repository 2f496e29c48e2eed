"""
SQL tail (WHERE / ORDER BY / LIMIT / OFFSET) for filtered listing pages.

Pure: this module never talks to Postgres. The returned fragment uses asyncpg
positional placeholders numbered from $1, and the returned parameter list
matches them in order.

Sort rules:
- `sort_by` of `price` or `created_at` must come with `asc` or `desc`,
  anything else is an `InvalidFilterError`
- any other `sort_by` (including empty) quietly falls back to newest first
- every ordering ends with `l.id ASC` so pages stay stable on equal keys
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .errors import InvalidFilterError
from .models import ListingFilter


class SortField(str, Enum):
    PRICE = "price"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


DEFAULT_SORT = (SortField.CREATED_AT, SortOrder.DESC)

_ORDER_BY: dict[tuple[SortField, SortOrder], str] = {
    (SortField.PRICE, SortOrder.ASC): "ORDER BY l.price ASC, l.created_at DESC, l.id ASC",
    (SortField.PRICE, SortOrder.DESC): "ORDER BY l.price DESC, l.created_at DESC, l.id ASC",
    (SortField.CREATED_AT, SortOrder.ASC): "ORDER BY l.created_at ASC, l.id ASC",
    (SortField.CREATED_AT, SortOrder.DESC): "ORDER BY l.created_at DESC, l.id ASC",
}


def resolve_sort(listing_filter: ListingFilter) -> tuple[SortField, SortOrder]:
    try:
        field = SortField(listing_filter.sort_by)
    except ValueError:
        return DEFAULT_SORT

    try:
        order = SortOrder(listing_filter.sort_order)
    except ValueError as exc:
        raise InvalidFilterError(
            f"invalid sort order {listing_filter.sort_order!r} for sort field {field.value!r}"
        ) from exc

    return field, order


def build_tail(limit: int, offset: int, listing_filter: ListingFilter | None) -> tuple[str, list[Any]]:
    """
    Return `(fragment, params)` to append after the listings SELECT/JOIN.
    """
    lines: list[str] = []
    params: list[Any] = []

    def placeholder(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    if listing_filter is not None:
        where: list[str] = []
        if listing_filter.min_price > 0:
            where.append(f"l.price >= {placeholder(listing_filter.min_price)}")
        if listing_filter.max_price > 0:
            where.append(f"l.price <= {placeholder(listing_filter.max_price)}")
        if where:
            lines.append("WHERE " + " AND ".join(where))

        lines.append(_ORDER_BY[resolve_sort(listing_filter)])

    lines.append(f"LIMIT {placeholder(limit)} OFFSET {placeholder(offset)}")
    return "\n".join(lines), params
