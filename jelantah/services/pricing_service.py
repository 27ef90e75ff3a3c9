"""
Pricing Engine.

Pure functions of (settings snapshot, volume). All arithmetic is done in
``Decimal``; amounts are rounded to whole currency units only when they are
persisted (see ``to_currency``).

Tier lookup walks tier 1, tier 2, tier 3 in order and takes the first tier
whose range contains the volume. Tier 3 has no upper bound. Volumes matching
no tier (below tier 1 minimum or in a gap between tiers) use the tier 1 rate.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.services.settings_service import SettingsCache, SettingsService, SettingsSnapshot

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

CURRENCY_UNIT = Decimal("1")


def as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_currency(amount: Decimal) -> Decimal:
    """Round to whole currency units, half up."""
    return as_decimal(amount).quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingBreakdown:
    volume: Decimal
    price_per_liter: Decimal
    total_price: Decimal
    courier_commission: Decimal
    affiliate_commission: Decimal


class PricingEngine:
    """Price calculations over one settings snapshot."""

    def __init__(self, snapshot: SettingsSnapshot):
        self.snapshot = snapshot

    @classmethod
    async def load(cls, db: AsyncSession, cache: Optional[SettingsCache] = None) -> "PricingEngine":
        snapshot = await SettingsService(db, cache).get_snapshot()
        return cls(snapshot)

    def price_per_liter(self, volume: Number) -> Decimal:
        volume = as_decimal(volume)
        s = self.snapshot

        if s.price_tier1_min <= volume <= s.price_tier1_max:
            return s.price_tier1_rate
        if s.price_tier2_min <= volume <= s.price_tier2_max:
            return s.price_tier2_rate
        if volume >= s.price_tier3_min:
            return s.price_tier3_rate

        return s.price_tier1_rate

    def total_price(self, volume: Number) -> Decimal:
        volume = as_decimal(volume)
        return volume * self.price_per_liter(volume)

    def courier_commission(self, volume: Number) -> Decimal:
        return as_decimal(volume) * self.snapshot.courier_commission_per_liter

    def affiliate_commission(self, volume: Number) -> Decimal:
        return as_decimal(volume) * self.snapshot.affiliate_commission_per_liter

    def quote(self, volume: Number) -> PricingBreakdown:
        """All figures for ``volume`` computed against the same snapshot."""
        volume = as_decimal(volume)
        return PricingBreakdown(
            volume=volume,
            price_per_liter=self.price_per_liter(volume),
            total_price=self.total_price(volume),
            courier_commission=self.courier_commission(volume),
            affiliate_commission=self.affiliate_commission(volume),
        )
