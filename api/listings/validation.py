"""
Structural validation of a listing draft.

Runs before any storage call. Surrounding whitespace does not count towards
the minimum length but does count towards the maximum.
"""

from __future__ import annotations

from .errors import ValidationFailedError
from .models import ListingDraft

MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 100
MIN_BODY_LENGTH = 10
MAX_BODY_LENGTH = 2000
MIN_PRICE = 1
MAX_PRICE = 1_000_000_000


def _check_text(field: str, value: str, min_len: int, max_len: int) -> None:
    value = value or ""
    if len(value.strip()) < min_len or len(value) > max_len:
        raise ValidationFailedError(
            field,
            f"{field} must be between {min_len} and {max_len} characters",
        )


def validate_draft(draft: ListingDraft) -> None:
    _check_text("title", draft.title, MIN_TITLE_LENGTH, MAX_TITLE_LENGTH)
    _check_text("body", draft.body, MIN_BODY_LENGTH, MAX_BODY_LENGTH)

    # bool is an int subclass; reject it explicitly.
    if isinstance(draft.price, bool) or not isinstance(draft.price, int):
        raise ValidationFailedError("price", "price must be an integer")
    if draft.price < MIN_PRICE or draft.price > MAX_PRICE:
        raise ValidationFailedError(
            "price",
            f"price must be between {MIN_PRICE} and {MAX_PRICE}",
        )
