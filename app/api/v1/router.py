"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import admin, assignments, bookings, lifecycle, payments

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Assignments
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])

# Unified lifecycle feed
api_router.include_router(lifecycle.router, prefix="/lifecycle", tags=["Lifecycle"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
