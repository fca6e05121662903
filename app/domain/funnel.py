"""Funnel stage mapping for bookings and pre-booking requests."""

FUNNEL_STAGES: tuple[str, ...] = (
    "requested",
    "quoted",
    "confirmed",
    "card_saved",
    "scheduled",
    "in_progress",
    "service_completed",
    "payment_failed",
    "charged",
    "cancelled",
)

ROW_TYPES: tuple[str, ...] = ("booking", "pre_booking")

OPERATIONAL_TO_FUNNEL: dict[str, str] = {
    "pending_card": "confirmed",
    "card_saved": "card_saved",
    "scheduled": "scheduled",
    "in_progress": "in_progress",
    "completed": "service_completed",
    "payment_failed": "payment_failed",
    "failed": "payment_failed",
    "charged": "charged",
    "cancelled": "cancelled",
}

QUOTED_QUOTE_STATUSES = frozenset({"sent", "expired", "send_failed"})


def map_operational_status_to_funnel(status: str) -> str | None:
    return OPERATIONAL_TO_FUNNEL.get(status)


def derive_pre_booking_funnel_stage(
    request_status: str | None = None,
    quote_status: str | None = None,
    quote_request_status: str | None = None,
) -> str:
    """Funnel stage of an intake that has not produced a booking yet.

    A confirmed request or accepted quote wins over a sent quote, which wins over
    the quote request's own status.
    """
    if request_status == "confirmed" or quote_status == "accepted":
        return "confirmed"
    if quote_status in QUOTED_QUOTE_STATUSES or quote_request_status == "quoted":
        return "quoted"
    if quote_request_status == "confirmed":
        return "confirmed"
    return "requested"
