"""Pydantic schemas for price quotes."""
from decimal import Decimal

from pydantic import BaseModel


class PriceQuoteResponse(BaseModel):
    """Estimate for a volume at current settings, rounded to whole currency units."""
    volume: Decimal
    price_per_liter: Decimal
    total_price: Decimal
    courier_commission: Decimal
    affiliate_commission: Decimal
