from fastapi import APIRouter

from jelantah.api.v1.endpoints import (
    pickups,
    bills,
    commissions,
    settings,
    pricing,
    notifications,
    messages,
    dashboard,
)

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Pickups ====================
api_router.include_router(
    pickups.router,
    prefix="/pickups",
    tags=["Pickups"]
)
api_router.include_router(
    messages.router,
    prefix="/pickups",
    tags=["Messages"]
)

# ==================== Finance ====================
api_router.include_router(
    bills.router,
    prefix="/bills",
    tags=["Bills"]
)
api_router.include_router(
    commissions.router,
    prefix="/commissions",
    tags=["Commissions"]
)

# ==================== Pricing ====================
api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["Settings"]
)
api_router.include_router(
    pricing.router,
    prefix="/pricing",
    tags=["Pricing"]
)

# ==================== Notifications ====================
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)

# ==================== Dashboard ====================
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
