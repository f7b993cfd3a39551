"""
API v1 router setup
Organized into: bookings, availability and notification operations
"""
from fastapi import APIRouter

from booking_core.api.v1 import availability, bookings, notifications

api_v1_router = APIRouter()

# ============================================================================
# BOOKING ROUTES
# ============================================================================
api_v1_router.include_router(bookings.router)

api_v1_router.include_router(availability.router)

# ============================================================================
# NOTIFICATION QUEUE ROUTES (operators)
# ============================================================================
api_v1_router.include_router(notifications.router)
