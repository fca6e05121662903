"""
Tests for funnel stage mapping and keyset cursors.
"""
from datetime import UTC, datetime, timedelta

import pytest

from app.core.exceptions import ValidationError
from app.domain.funnel import derive_pre_booking_funnel_stage, map_operational_status_to_funnel
from app.domain.pagination import clamp_limit, decode_cursor, encode_cursor, paginate_desc


@pytest.mark.unit
@pytest.mark.parametrize(
    "status,stage",
    [
        ("pending_card", "confirmed"),
        ("card_saved", "card_saved"),
        ("scheduled", "scheduled"),
        ("in_progress", "in_progress"),
        ("completed", "service_completed"),
        ("payment_failed", "payment_failed"),
        ("failed", "payment_failed"),
        ("charged", "charged"),
        ("cancelled", "cancelled"),
    ],
)
def test_operational_status_maps_to_funnel(status, stage):
    assert map_operational_status_to_funnel(status) == stage


@pytest.mark.unit
def test_unknown_operational_status_has_no_stage():
    assert map_operational_status_to_funnel("archived") is None


@pytest.mark.unit
def test_pre_booking_stage_precedence():
    """Confirmed request or accepted quote wins; a sent quote means quoted."""
    assert derive_pre_booking_funnel_stage() == "requested"
    assert derive_pre_booking_funnel_stage(request_status="requested") == "requested"
    assert derive_pre_booking_funnel_stage(quote_status="sent") == "quoted"
    assert derive_pre_booking_funnel_stage(quote_status="expired") == "quoted"
    assert derive_pre_booking_funnel_stage(quote_request_status="quoted") == "quoted"
    assert derive_pre_booking_funnel_stage(quote_request_status="confirmed") == "confirmed"
    assert derive_pre_booking_funnel_stage(request_status="confirmed", quote_status="sent") == "confirmed"
    assert derive_pre_booking_funnel_stage(quote_status="accepted") == "confirmed"
    assert derive_pre_booking_funnel_stage(quote_status="draft") == "requested"


@pytest.mark.unit
def test_cursor_is_opaque_and_decodes_to_sort_key():
    created_at = datetime(2026, 2, 12, 9, 30, tzinfo=UTC)
    cursor = encode_cursor(created_at, "booking:abc")

    assert "booking" not in cursor
    assert decode_cursor(cursor) == (created_at, "booking:abc")


@pytest.mark.unit
def test_naive_cursor_timestamps_are_treated_as_utc():
    naive = datetime(2026, 2, 12, 9, 30)
    assert decode_cursor(encode_cursor(naive, 3)) == (naive.replace(tzinfo=UTC), 3)


@pytest.mark.unit
@pytest.mark.parametrize("cursor", ["not-a-cursor", "e30", "!!!"])
def test_malformed_cursor_rejected(cursor):
    with pytest.raises(ValidationError):
        decode_cursor(cursor)


@pytest.mark.unit
def test_clamp_limit():
    assert clamp_limit(None, 20, 100) == 20
    assert clamp_limit(0, 20, 100) == 1
    assert clamp_limit(-5, 20, 100) == 1
    assert clamp_limit(1000, 20, 100) == 100
    assert clamp_limit(50, 20, 100) == 50


@pytest.mark.unit
def test_paginate_desc_pages_are_disjoint_and_contiguous():
    """Walking the cursor yields the same rows as one unbounded page."""
    base = datetime(2026, 1, 1, tzinfo=UTC)
    # Two rows share a timestamp to exercise the tiebreak
    rows = [(base + timedelta(minutes=i // 2), f"row:{i}") for i in range(7)]

    def key(row):
        return row

    everything, end = paginate_desc(rows, key, limit=100)
    assert end is None

    pages = []
    cursor = None
    while True:
        page, cursor = paginate_desc(rows, key, limit=2, cursor=cursor)
        pages.append(page)
        if cursor is None:
            break

    walked = [row for page in pages for row in page]
    assert walked == everything
    assert len(set(walked)) == len(rows)
    assert all(len(page) == 2 for page in pages[:-1])
    assert walked == sorted(rows, reverse=True)


@pytest.mark.unit
def test_paginate_desc_ignores_rows_newer_than_cursor():
    """Rows inserted after the first page do not shift later pages."""
    base = datetime(2026, 1, 1, tzinfo=UTC)
    rows = [(base + timedelta(minutes=i), f"row:{i}") for i in range(4)]

    first, cursor = paginate_desc(rows, lambda r: r, limit=2)
    rows.append((base + timedelta(hours=1), "row:new"))
    second, _ = paginate_desc(rows, lambda r: r, limit=2, cursor=cursor)

    assert [r[1] for r in first] == ["row:3", "row:2"]
    assert [r[1] for r in second] == ["row:1", "row:0"]
