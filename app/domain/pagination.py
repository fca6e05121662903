"""Opaque keyset cursors for reverse-chronological feeds.

A cursor serializes the sort key of the last row served: its creation time and a
tiebreak (row id or per-booking sequence). The next page holds every row whose key
sorts strictly below it, so rows inserted after the first page never shift later
pages.
"""

import base64
import binascii
import json
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from app.core.exceptions import ValidationError
from app.utils.timeutils import ensure_utc

T = TypeVar("T")

SortKey = tuple[datetime, Any]


def encode_cursor(created_at: datetime, tiebreak: str | int) -> str:
    payload = {"t": ensure_utc(created_at).isoformat(), "k": tiebreak}
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str | None) -> SortKey | None:
    """Decode a cursor produced by ``encode_cursor``.

    Raises:
        ValidationError: If the cursor is malformed
    """
    if not cursor:
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
        return ensure_utc(datetime.fromisoformat(payload["t"])), payload["k"]
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise ValidationError(f"Invalid cursor: {e}")


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    if limit is None:
        return default
    return max(1, min(limit, maximum))


def paginate_desc(
    rows: Sequence[T],
    key: Callable[[T], SortKey],
    limit: int,
    cursor: str | None = None,
) -> tuple[list[T], str | None]:
    """Sort rows newest-first and cut one page after ``cursor``.

    Returns:
        The page and the cursor of the following page (None at the end)
    """
    ordered = sorted(rows, key=key, reverse=True)
    after = decode_cursor(cursor)
    if after is not None:
        ordered = [row for row in ordered if key(row) < after]

    page = ordered[:limit]
    next_cursor = None
    if len(ordered) > limit and page:
        created_at, tiebreak = key(page[-1])
        next_cursor = encode_cursor(created_at, tiebreak)
    return page, next_cursor
