"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# ==================== BOOKING LIFECYCLE ====================


class InvalidTransition(AppException):
    """Requested booking status edge is not in the transition table."""

    def __init__(self, current: str, requested: str, source: str | None = None) -> None:
        self.current = current
        self.requested = requested
        self.source = source
        detail = f"Invalid booking transition from {current} to {requested}"
        if source:
            detail = f"{detail} (source: {source})"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class MissingReason(AppException):
    """Override transition attempted without a reason."""

    def __init__(self, current: str | None = None, requested: str | None = None) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Override transitions require a reason",
        )


class MissingActor(AppException):
    """Override transition attempted without an acting user."""

    def __init__(self, current: str | None = None, requested: str | None = None) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Override transitions require an acting user",
        )


class OverrideSourceNotAllowed(AppException):
    """Override transition requested by a caller outside the allow-list."""

    def __init__(self, source: str, current: str | None = None, requested: str | None = None) -> None:
        self.source = source
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Override transition source is not allowed: {source}",
        )


class InvalidAssignmentTransition(AppException):
    """Assignment sub-state edge is not allowed."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"transition {current} -> {requested} is not allowed",
        )


class ChecklistIncomplete(AppException):
    """Clock-out blocked by unfinished checklist items."""

    def __init__(self, assignment_id: str | None = None, remaining: int = 0) -> None:
        self.assignment_id = assignment_id
        self.remaining = remaining
        self.current = "in_progress"
        self.requested = "completed"
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot clock out before checklist is complete",
        )


class CancellationNotAllowed(AppException):
    """Cancellation attempted from an ineligible booking status."""

    def __init__(self, current: str) -> None:
        self.current = current
        self.requested = "cancelled"
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                "Cancellation is only allowed from pending_card, card_saved, or scheduled "
                f"(current: {current})"
            ),
        )


class ConcurrentModification(AppException):
    """Row changed underneath the current transaction."""

    def __init__(self, detail: str = "The record was modified concurrently; re-read and retry") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
