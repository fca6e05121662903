"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    CancellationNotAllowed,
    ChecklistIncomplete,
    ConcurrentModification,
    InvalidAssignmentTransition,
    InvalidTransition,
    MissingActor,
    MissingReason,
    NotFoundError,
    OverrideSourceNotAllowed,
    ValidationError,
)
from app.core.security import create_access_token, verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "CancellationNotAllowed",
    "ChecklistIncomplete",
    "ConcurrentModification",
    "InvalidAssignmentTransition",
    "InvalidTransition",
    "MissingActor",
    "MissingReason",
    "NotFoundError",
    "OverrideSourceNotAllowed",
    "ValidationError",
    "create_access_token",
    "verify_token",
]
