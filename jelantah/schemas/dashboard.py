"""Pydantic schemas for the per-role dashboard."""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DashboardStatsResponse(BaseModel):
    """
    Headline numbers for the current user's role.

    Only the fields belonging to ``role`` are filled; the rest stay None and
    are left out of the response.
    """
    role: str

    # Admin
    total_users: Optional[int] = None
    total_pickups: Optional[int] = None
    total_revenue: Optional[Decimal] = None
    overdue_bills: Optional[int] = None

    # Admin and customer
    pending_pickups: Optional[int] = None
    unpaid_bills: Optional[int] = None

    # Customer
    my_pickups: Optional[int] = None
    total_spent: Optional[Decimal] = None

    # Customer and courier
    completed_pickups: Optional[int] = None

    # Courier
    assigned_pickups: Optional[int] = None
    total_earnings: Optional[Decimal] = None
    pending_commissions: Optional[int] = None

    # Warehouse
    received_pickups: Optional[int] = None
    total_volume: Optional[Decimal] = None
